"""
Tests for comments on news, events and applications.
"""

from datetime import datetime

import pytest

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.services.applications import ApplicationService
from app.services.comments import (
    ApplicationTarget, CommentService, EventTarget, NewsTarget, get_settings, parse_target, update_settings,
)
from app.services.events import EventRepository
from app.services.news import NewsRepository


@pytest.fixture
def admin(make_user, identity_of):
    return identity_of(make_user(role="admin"))


@pytest.fixture
def reader(make_user, identity_of):
    return identity_of(make_user())


@pytest.fixture
def news(db, admin):
    return NewsRepository(db).create(admin, {"title": "Open thread", "is_published": True})


class TestTargets:
    def test_parse_target(self) -> None:
        assert parse_target("news", 3) == NewsTarget(3)
        assert parse_target("event", 4) == EventTarget(4)
        assert parse_target("application", 5) == ApplicationTarget(5)

    def test_unknown_entity_type(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            parse_target("poll", 1)
        assert exc_info.value.error_code == "invalid_entity_type"


class TestCreate:
    """Tests for posting comments."""

    def test_comment_on_visible_news(self, db, reader, news, tasks) -> None:
        comment = CommentService(db, tasks).create(reader, NewsTarget(news.id), "  Nice work  ")
        assert comment.content == "Nice work"
        assert comment.is_approved
        assert tasks.names() == ["award_xp"]

    def test_cannot_comment_on_hidden_news(self, db, admin, reader, make_group) -> None:
        group = make_group("Board")
        hidden = NewsRepository(db).create(admin, {"title": "Board only", "is_published": True, "target_group_ids": [group.id]})
        with pytest.raises(AuthorizationError):
            CommentService(db).create(reader, NewsTarget(hidden.id), "Let me in")

    def test_missing_target(self, db, reader) -> None:
        with pytest.raises(NotFoundError):
            CommentService(db).create(reader, EventTarget(404), "Hello?")

    def test_disabled_per_entity_type(self, db, admin, reader) -> None:
        """Application comments are off by default."""
        service = ApplicationService(db)
        app_group = service.create_app_group(admin, {"name": "Tools"})
        application = service.create_application(admin, {"app_group_id": app_group.id, "name": "Wiki", "url": "https://wiki"})
        with pytest.raises(AuthorizationError) as exc_info:
            CommentService(db).create(reader, ApplicationTarget(application.id), "Handy")
        assert exc_info.value.error_code == "comments_disabled"

    def test_globally_disabled(self, db, reader, news) -> None:
        update_settings(db, {"enabled": False})
        with pytest.raises(AuthorizationError):
            CommentService(db).create(reader, NewsTarget(news.id), "Anyone?")

    def test_length_limits(self, db, reader, news) -> None:
        update_settings(db, {"max_length": 10})
        service = CommentService(db)
        with pytest.raises(ValidationError) as exc_info:
            service.create(reader, NewsTarget(news.id), "x" * 11)
        assert exc_info.value.error_code == "comment_too_long"
        with pytest.raises(ValidationError) as exc_info:
            service.create(reader, NewsTarget(news.id), "   ")
        assert exc_info.value.error_code == "empty_comment"

    def test_comment_on_event(self, db, admin, reader) -> None:
        event = EventRepository(db).create(admin, {"title": "Town hall", "start_date": datetime(2026, 6, 1, 10)})
        comment = CommentService(db).create(reader, EventTarget(event.id), "See you there")
        assert comment.entity_type == "event"


class TestModeration:
    """Tests for moderated threads."""

    def test_moderated_comment_is_hidden_until_approved(self, db, admin, reader, make_user, identity_of, news) -> None:
        update_settings(db, {"require_moderation": True})
        service = CommentService(db)
        comment = service.create(reader, NewsTarget(news.id), "Pending")
        assert not comment.is_approved

        other = identity_of(make_user())
        assert service.list(other, NewsTarget(news.id), 1, 20) == ([], 0)
        own, total = service.list(reader, NewsTarget(news.id), 1, 20)
        assert total == 1 and own[0].id == comment.id

        pending, _ = service.pending(admin, 1, 20)
        assert [c.id for c in pending] == [comment.id]

        service.moderate(admin, comment.id, is_approved=True, is_flagged=None)
        visible, total = service.list(other, NewsTarget(news.id), 1, 20)
        assert total == 1 and visible[0].moderated_by == admin.user_id

    def test_moderators_skip_the_queue(self, db, make_user, identity_of, news) -> None:
        update_settings(db, {"require_moderation": True})
        editor = identity_of(make_user(role="editor"))
        assert CommentService(db).create(editor, NewsTarget(news.id), "Approved").is_approved

    def test_regular_users_cannot_moderate(self, db, reader, news) -> None:
        service = CommentService(db)
        comment = service.create(reader, NewsTarget(news.id), "Mine")
        with pytest.raises(AuthorizationError):
            service.moderate(reader, comment.id, is_approved=False, is_flagged=None)
        with pytest.raises(AuthorizationError):
            service.pending(reader, 1, 20)

    def test_editor_who_leads_a_group_still_moderates(self, db, make_group, make_user, identity_of, reader, news) -> None:
        update_settings(db, {"require_moderation": True})
        editor_lead = identity_of(make_user(role="editor", admin_of=[make_group("Ops")]))
        service = CommentService(db)

        assert service.create(editor_lead, NewsTarget(news.id), "Straight through").is_approved
        comment = service.create(reader, NewsTarget(news.id), "Waiting")
        pending, _ = service.pending(editor_lead, 1, 20)
        assert [c.id for c in pending] == [comment.id]
        assert service.moderate(editor_lead, comment.id, is_approved=True, is_flagged=None).is_approved


class TestEditAndDelete:
    """Tests for who may change a comment."""

    def test_author_edits_own_comment(self, db, reader, news) -> None:
        service = CommentService(db)
        comment = service.create(reader, NewsTarget(news.id), "Frist")
        assert service.update(reader, comment.id, "First").content == "First"

    def test_others_cannot_edit_or_delete(self, db, reader, make_user, identity_of, news) -> None:
        service = CommentService(db)
        comment = service.create(reader, NewsTarget(news.id), "Mine")
        stranger = identity_of(make_user())
        with pytest.raises(AuthorizationError):
            service.update(stranger, comment.id, "Yours")
        with pytest.raises(AuthorizationError):
            service.delete(stranger, comment.id)

    def test_group_admin_deletes_on_managed_content(self, db, admin, make_group, make_user, identity_of) -> None:
        group = make_group("Ops")
        member = identity_of(make_user(member_of=[group]))
        group_admin = identity_of(make_user(admin_of=[group]))
        item = NewsRepository(db).create(admin, {"title": "Ops news", "is_published": True, "target_group_ids": [group.id]})

        service = CommentService(db)
        comment = service.create(member, NewsTarget(item.id), "Noted")
        service.delete(group_admin, comment.id)

        with pytest.raises(NotFoundError):
            service.update(member, comment.id, "Still here?")

    def test_group_admin_cannot_delete_on_global_content(self, db, reader, make_group, make_user, identity_of, news) -> None:
        group_admin = identity_of(make_user(admin_of=[make_group("Ops")]))
        service = CommentService(db)
        comment = service.create(reader, NewsTarget(news.id), "Global")
        with pytest.raises(AuthorizationError):
            service.delete(group_admin, comment.id)


class TestSettings:
    def test_defaults_are_created_once(self, db) -> None:
        first = get_settings(db)
        assert first.enabled and first.news_enabled and not first.applications_enabled
        assert get_settings(db).id == first.id
