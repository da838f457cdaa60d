"""
HTTP-level tests: authentication, error envelope, list envelopes and a few
end-to-end flows through the routers.
"""

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import PASSWORD

API = "/api/v1"


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", username="root")


@pytest.fixture
def reader(make_user):
    return make_user(username="reader")


class TestAuth:
    """Tests for login, /me and token handling."""

    def test_login_returns_token_and_queues_daily_xp(self, client, reader, tasks) -> None:
        response = client.post(f"{API}/auth/login", json={"email": reader.email, "password": PASSWORD})
        assert response.status_code == 200
        body = response.json()
        assert body["token_type"] == "bearer"
        assert body["user_name"] == "reader"
        assert tasks.names() == ["award_xp"]

        me = client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert me.status_code == 200
        assert me.json()["effective_role"] == "user"

    def test_wrong_password(self, client, reader) -> None:
        response = client.post(f"{API}/auth/login", json={"email": reader.email, "password": "nope"})
        assert response.status_code == 401
        assert response.json() == {"error": "invalid_credentials", "message": "Invalid email or password", "code": 401}

    def test_disabled_account(self, client, make_user) -> None:
        user = make_user(is_active=False)
        response = client.post(f"{API}/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 401
        assert response.json()["error"] == "account_disabled"

    def test_missing_and_bad_tokens(self, client) -> None:
        assert client.get(f"{API}/news").json()["error"] == "authentication_required"
        response = client.get(f"{API}/news", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"] == "invalid_token"

    def test_me_reports_group_admin(self, client, make_group, make_user, auth_headers) -> None:
        group = make_group("Ops")
        lead = make_user(admin_of=[group])
        body = client.get(f"{API}/auth/me", headers=auth_headers(lead)).json()
        assert body["effective_role"] == "group_admin"
        assert body["managed_group_ids"] == [group.id]
        assert body["role"] == "user"


class TestErrorEnvelope:
    """Every failure answers with the same JSON shape."""

    def test_request_validation_is_400(self, client, admin, auth_headers) -> None:
        response = client.post(f"{API}/news", json={"title": ""}, headers=auth_headers(admin))
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert body["code"] == 400
        assert body["message"].startswith("title")

    def test_not_found(self, client, admin, auth_headers) -> None:
        response = client.get(f"{API}/news/999", headers=auth_headers(admin))
        assert response.status_code == 404
        assert response.json()["error"] == "news_not_found"

    def test_admin_only_route(self, client, reader, auth_headers) -> None:
        response = client.get(f"{API}/users", headers=auth_headers(reader))
        assert response.status_code == 403
        assert response.json()["error"] == "admin_required"

    def test_bad_search_term(self, client, reader, auth_headers) -> None:
        response = client.get(f"{API}/news", params={"search": "x"}, headers=auth_headers(reader))
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_search"

    def test_page_size_is_bounded(self, client, reader, auth_headers) -> None:
        response = client.get(f"{API}/news", params={"page_size": 500}, headers=auth_headers(reader))
        assert response.status_code == 400

    def test_health_needs_no_auth(self, client) -> None:
        assert client.get("/health").json() == {"status": "ok"}


class TestNewsFlow:
    """Create, read and list news over HTTP."""

    def test_list_envelope_and_visibility(self, client, make_group, make_user, admin, auth_headers) -> None:
        group = make_group("Ops")
        member = make_user(member_of=[group])
        outsider = make_user()
        headers = auth_headers(admin)
        client.post(f"{API}/news", json={"title": "For Ops", "is_published": True, "target_group_ids": [group.id]}, headers=headers)
        client.post(f"{API}/news", json={"title": "For all", "is_published": True}, headers=headers)

        body = client.get(f"{API}/news", headers=auth_headers(member)).json()
        assert set(body) == {"news", "total", "page", "page_size", "total_pages"}
        assert body["total"] == 2

        body = client.get(f"{API}/news", headers=auth_headers(outsider)).json()
        assert [n["title"] for n in body["news"]] == ["For all"]

    def test_read_by_slug_counts_view(self, client, admin, reader, auth_headers) -> None:
        created = client.post(
            f"{API}/news", json={"title": "Hello World", "is_published": True}, headers=auth_headers(admin)
        ).json()
        assert created["slug"] == "hello-world"

        response = client.get(f"{API}/news/slug/hello-world", headers=auth_headers(reader))
        assert response.status_code == 200
        assert response.json()["views_count"] == 1

    def test_forbidden_news_is_403(self, client, make_group, admin, reader, auth_headers) -> None:
        group = make_group("Board")
        created = client.post(
            f"{API}/news",
            json={"title": "Board minutes", "is_published": True, "target_group_ids": [group.id]},
            headers=auth_headers(admin),
        ).json()
        response = client.get(f"{API}/news/{created['id']}", headers=auth_headers(reader))
        assert response.status_code == 403
        assert response.json()["error"] == "not_in_target_groups"

    def test_regular_user_cannot_post(self, client, reader, auth_headers) -> None:
        response = client.post(f"{API}/news", json={"title": "Mine"}, headers=auth_headers(reader))
        assert response.status_code == 403
        assert response.json()["error"] == "cannot_author"

    def test_group_admin_targeting_foreign_group(self, client, make_group, make_user, auth_headers) -> None:
        ops, hr = make_group("Ops"), make_group("HR")
        lead = make_user(admin_of=[ops])
        response = client.post(
            f"{API}/news", json={"title": "Both", "target_group_ids": [ops.id, hr.id]}, headers=auth_headers(lead)
        )
        assert response.status_code == 403
        assert response.json()["error"] == "target_group_not_managed"
        assert client.get(f"{API}/news/manage", headers=auth_headers(lead)).json()["total"] == 0


class TestPollsFlow:
    def test_vote_and_has_voted(self, client, admin, reader, auth_headers) -> None:
        poll = client.post(
            f"{API}/polls", json={"title": "Lunch?", "options": ["Pizza", "Sushi"]}, headers=auth_headers(admin)
        ).json()
        option_id = poll["options"][0]["id"]

        response = client.post(f"{API}/polls/{poll['id']}/vote", json={"option_ids": [option_id]}, headers=auth_headers(reader))
        assert response.status_code == 200

        again = client.post(f"{API}/polls/{poll['id']}/vote", json={"option_ids": [option_id]}, headers=auth_headers(reader))
        assert again.status_code == 409

        listed = client.get(f"{API}/polls", headers=auth_headers(reader)).json()
        assert listed["polls"][0]["has_voted"] is True

    def test_hidden_poll_is_404(self, client, make_group, admin, reader, auth_headers) -> None:
        group = make_group("Board")
        poll = client.post(
            f"{API}/polls",
            json={"title": "Board vote", "options": ["Yes", "No"], "target_group_ids": [group.id]},
            headers=auth_headers(admin),
        ).json()
        assert client.get(f"{API}/polls/{poll['id']}", headers=auth_headers(reader)).status_code == 404


class TestUsersFlow:
    def test_admin_creates_and_purges_user(self, client, admin, auth_headers) -> None:
        headers = auth_headers(admin)
        created = client.post(
            f"{API}/users",
            json={"username": "newbie", "email": "newbie@example.com", "password": "long-enough"},
            headers=headers,
        )
        assert created.status_code == 201
        user_id = created.json()["id"]

        duplicate = client.post(
            f"{API}/users",
            json={"username": "newbie", "email": "other@example.com", "password": "long-enough"},
            headers=headers,
        )
        assert duplicate.status_code == 409

        assert client.delete(f"{API}/users/{user_id}", params={"permanent": True}, headers=headers).status_code == 200
        assert client.get(f"{API}/users/{user_id}", headers=headers).status_code == 404

    def test_token_of_deleted_user_stops_working(self, client, admin, reader, auth_headers) -> None:
        reader_headers = auth_headers(reader)
        client.delete(f"{API}/users/{reader.id}", headers=auth_headers(admin))
        assert client.get(f"{API}/auth/me", headers=reader_headers).status_code == 401


class TestHome:
    def test_settings_are_public_and_admin_writable(self, client, admin, reader, auth_headers) -> None:
        assert client.get(f"{API}/settings").json() == {}
        assert client.put(f"{API}/settings", json={"site_name": "Hub"}, headers=auth_headers(reader)).status_code == 403
        client.put(f"{API}/settings", json={"site_name": "Hub"}, headers=auth_headers(admin))
        assert client.get(f"{API}/settings").json() == {"site_name": "Hub"}

    def test_home_feed(self, client, admin, reader, auth_headers) -> None:
        client.post(f"{API}/admin/announcements", json={"title": "Welcome"}, headers=auth_headers(admin))
        client.post(f"{API}/news", json={"title": "Fresh", "is_published": True}, headers=auth_headers(admin))
        feed = client.get(f"{API}/home", headers=auth_headers(reader)).json()
        assert [a["title"] for a in feed["announcements"]] == ["Welcome"]
        assert [n["title"] for n in feed["news"]] == ["Fresh"]
        assert feed["events"] == [] and feed["polls"] == []


class TestChatSocket:
    """WebSocket authentication and delivery."""

    def test_missing_token_is_rejected(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{API}/chat/ws"):
                pass
        assert exc_info.value.code == 1008

    def test_invalid_token_is_rejected(self, client) -> None:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{API}/chat/ws?token=garbage"):
                pass
        assert exc_info.value.code == 4403

    def test_sender_receives_own_message_and_errors(self, client, reader, make_user, auth_headers) -> None:
        friend = make_user()
        token = auth_headers(reader)["Authorization"].split()[1]
        with client.websocket_connect(f"{API}/chat/ws?token={token}") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["error"] == "invalid_frame"

            ws.send_json({"type": "message", "content": "", "recipient_id": friend.id})
            assert ws.receive_json()["error"] == "empty_message"

            ws.send_json({"type": "message", "content": "hi", "recipient_id": friend.id})
            message = ws.receive_json()
            assert message["type"] == "message"
            assert message["recipient_id"] == friend.id
            assert message["sender_username"] == "reader"

        history = client.get(f"{API}/chat/history", params={"target_id": friend.id}, headers=auth_headers(reader)).json()
        assert [m["content"] for m in history] == ["hi"]
