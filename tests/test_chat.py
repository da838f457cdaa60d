"""
Tests for chat messages and the WebSocket fan-out hub.
"""

import asyncio

import pytest

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.services import chat
from app.services.chat_hub import ChatClient, ChatHub


@pytest.fixture
def people(make_group, make_user, identity_of):
    team = make_group("Team")
    alice = make_user(username="alice", member_of=[team])
    bob = make_user(username="bob", member_of=[team])
    lead = make_user(username="lead", admin_of=[team])
    outsider = make_user(username="zed")
    return {
        "team": team,
        "alice": identity_of(alice),
        "bob": identity_of(bob),
        "lead": identity_of(lead),
        "outsider": identity_of(outsider),
    }


class TestSendMessage:
    """Tests for chat.send_message."""

    def test_direct_message_audience(self, db, people) -> None:
        alice, bob = people["alice"], people["bob"]
        message, audience = chat.send_message(db, alice, "hi bob", recipient_id=bob.user_id)
        assert audience == {alice.user_id, bob.user_id}
        assert chat.message_dict(message)["sender_username"] == "alice"

    def test_group_audience_includes_members_and_admins(self, db, people) -> None:
        _, audience = chat.send_message(db, people["alice"], "standup?", group_id=people["team"].id)
        assert audience == {people["alice"].user_id, people["bob"].user_id, people["lead"].user_id}

    def test_outsider_cannot_post_to_group(self, db, people) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            chat.send_message(db, people["outsider"], "let me in", group_id=people["team"].id)
        assert exc_info.value.error_code == "not_group_member"

    @pytest.mark.parametrize(
        "content, target, code",
        [
            ("both", {"recipient_id": 1, "group_id": 1}, "invalid_chat_target"),
            ("neither", {}, "invalid_chat_target"),
            ("   ", {"recipient_id": 1}, "empty_message"),
            ("x" * (chat.MAX_MESSAGE_LENGTH + 1), {"recipient_id": 1}, "message_too_long"),
        ],
    )
    def test_invalid_messages(self, db, people, content, target, code) -> None:
        with pytest.raises(ValidationError) as exc_info:
            chat.send_message(db, people["alice"], content, **target)
        assert exc_info.value.error_code == code

    def test_unknown_recipient(self, db, people) -> None:
        with pytest.raises(NotFoundError):
            chat.send_message(db, people["alice"], "hello?", recipient_id=9999)


class TestHistory:
    """Tests for history, delete and clear."""

    def test_direct_history_is_private_and_newest_first(self, db, people) -> None:
        alice, bob, lead = people["alice"], people["bob"], people["lead"]
        chat.send_message(db, alice, "one", recipient_id=bob.user_id)
        chat.send_message(db, bob, "two", recipient_id=alice.user_id)
        chat.send_message(db, lead, "unrelated", recipient_id=alice.user_id)

        messages = chat.history(db, alice, target_id=bob.user_id)
        assert [m.content for m in messages] == ["two", "one"]

    def test_only_sender_deletes(self, db, people) -> None:
        message, _ = chat.send_message(db, people["alice"], "oops", recipient_id=people["bob"].user_id)
        with pytest.raises(AuthorizationError):
            chat.delete_message(db, people["bob"], message.id)
        chat.delete_message(db, people["alice"], message.id)
        assert chat.history(db, people["bob"], target_id=people["alice"].user_id) == []

    def test_group_chat_cleared_by_group_admin_only(self, db, people) -> None:
        team_id = people["team"].id
        chat.send_message(db, people["alice"], "hello team", group_id=team_id)
        with pytest.raises(AuthorizationError) as exc_info:
            chat.clear_conversation(db, people["alice"], group_id=team_id)
        assert exc_info.value.error_code == "cannot_clear_group_chat"

        assert chat.clear_conversation(db, people["lead"], group_id=team_id) == 1

    def test_contacts(self, db, people) -> None:
        found = chat.contacts(db, people["alice"])
        assert [u.username for u in found["users"]] == ["bob", "lead", "zed"]
        assert [g.name for g in found["groups"]] == ["Team"]


class TestChatHub:
    """Fan-out to connected clients."""

    def test_message_reaches_every_connection_of_a_user(self) -> None:
        async def scenario():
            hub = ChatHub()
            laptop, phone, other = ChatClient(1), ChatClient(1), ChatClient(2)
            for client in (laptop, phone, other):
                await hub.register(client)

            delivered = await hub.send_to_users({1}, {"content": "hi"})
            return delivered, laptop.queue.get_nowait(), phone.queue.get_nowait(), other.queue.empty()

        delivered, first, second, other_empty = asyncio.run(scenario())
        assert delivered == 2
        assert first == second == {"content": "hi"}
        assert other_empty

    def test_slow_client_is_dropped(self) -> None:
        async def scenario():
            hub = ChatHub()
            slow, fast = ChatClient(1, queue_size=1), ChatClient(2)
            await hub.register(slow)
            await hub.register(fast)
            await hub.send_to_users({1, 2}, {"n": 1})
            delivered = await hub.send_to_users({1, 2}, {"n": 2})
            return delivered, slow.closed, await hub.online_user_ids()

        delivered, slow_closed, online = asyncio.run(scenario())
        assert delivered == 1
        assert slow_closed
        assert online == {2}

    def test_unregister_wakes_writer(self) -> None:
        async def scenario():
            hub = ChatHub()
            client = ChatClient(7)
            await hub.register(client)
            await hub.unregister(client)
            return client.queue.get_nowait(), await hub.online_user_ids(), client.offer({"late": True})

        sentinel, online, accepted = asyncio.run(scenario())
        assert sentinel is None
        assert online == set()
        assert not accepted
