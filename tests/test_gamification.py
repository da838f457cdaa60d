"""
Tests for XP, levels, achievements and notifications.
"""

from datetime import datetime

import pytest

from app.core.errors import NotFoundError
from app.models.gamification import XPTransaction
from app.models.notification import Notification
from app.services import notifications
from app.services.gamification import (
    award_xp, award_xp_job, leaderboard, level_for_xp, profile_summary, seed_achievements, user_achievements,
)
from app.services.news import NewsRepository

MORNING = datetime(2026, 3, 2, 7, 45)
AFTERNOON = datetime(2026, 3, 2, 15, 0)


@pytest.fixture(autouse=True)
def achievements(db):
    seed_achievements(db)


def unlocked(db, user_id):
    return {a["code"] for a in user_achievements(db, user_id) if a["unlocked"]}


class TestLevels:
    @pytest.mark.parametrize("xp, level", [(0, 1), (99, 1), (100, 2), (399, 2), (400, 3), (-5, 1)])
    def test_level_for_xp(self, xp: int, level: int) -> None:
        assert level_for_xp(xp) == level

    def test_summary_reports_next_threshold(self, db, make_user) -> None:
        user = make_user()
        award_xp(db, user.id, "news_publish", amount=150, now=AFTERNOON)
        assert profile_summary(db, user.id) == {"user_id": user.id, "total_xp": 150, "level": 2, "next_level_xp": 400}


class TestAwardXp:
    """Tests for award_xp."""

    def test_reward_table_is_used(self, db, make_user) -> None:
        user = make_user()
        profile = award_xp(db, user.id, "comment_create", reference_id=1, now=AFTERNOON)
        assert profile.total_xp == 10

    def test_once_per_reference_actions(self, db, make_user) -> None:
        user = make_user()
        award_xp(db, user.id, "news_read", reference_id=7, now=AFTERNOON)
        profile = award_xp(db, user.id, "news_read", reference_id=7, now=AFTERNOON)
        assert profile.total_xp == 5
        assert db.query(XPTransaction).filter(XPTransaction.user_id == user.id).count() == 1

    def test_repeatable_actions(self, db, make_user) -> None:
        user = make_user()
        award_xp(db, user.id, "app_click", reference_id=3, now=AFTERNOON)
        assert award_xp(db, user.id, "app_click", reference_id=3, now=AFTERNOON).total_xp == 4

    def test_early_login_unlocks_achievement_with_bonus(self, db, make_user) -> None:
        user = make_user()
        profile = award_xp(db, user.id, "daily_login", reference_id=20260302, now=MORNING)
        assert "early_bird" in unlocked(db, user.id)
        assert profile.total_xp == 5 + 50

    def test_achievement_unlocks_once(self, db, make_user) -> None:
        user = make_user()
        award_xp(db, user.id, "daily_login", reference_id=20260302, now=MORNING)
        profile = award_xp(db, user.id, "daily_login", reference_id=20260303, now=MORNING)
        assert profile.total_xp == 5 + 50 + 5

    def test_late_login_unlocks_nothing(self, db, make_user) -> None:
        user = make_user()
        award_xp(db, user.id, "daily_login", reference_id=20260302, now=AFTERNOON)
        assert unlocked(db, user.id) == set()

    def test_contributor_achievements_need_an_author_role(self, db, make_user, identity_of) -> None:
        editor = make_user(role="editor")
        NewsRepository(db).create(identity_of(editor), {"title": "Debut"})
        award_xp(db, editor.id, "news_publish", reference_id=1, now=AFTERNOON)
        assert "first_news" in unlocked(db, editor.id)

    def test_job_uses_its_own_session(self, db, make_user, session_factory) -> None:
        user = make_user()
        award_xp_job(user.id, "poll_vote", 4, session_factory=session_factory)
        assert profile_summary(db, user.id)["total_xp"] == 10


class TestLeaderboard:
    def test_ordered_by_xp_and_skips_inactive(self, db, make_user) -> None:
        first, second, gone = make_user(username="amy"), make_user(username="ben"), make_user(username="cat")
        award_xp(db, first.id, "news_publish", amount=300, now=AFTERNOON)
        award_xp(db, second.id, "news_publish", amount=100, now=AFTERNOON)
        award_xp(db, gone.id, "news_publish", amount=900, now=AFTERNOON)
        gone.is_active = False
        db.commit()

        board = leaderboard(db, limit=10)
        assert [(row["rank"], row["username"]) for row in board] == [(1, "amy"), (2, "ben")]


class FakeMailer:
    enabled = True

    def __init__(self):
        self.sent = []

    def send(self, recipients, subject, body):
        self.sent.append((list(recipients), subject))
        return len(self.sent[-1][0])


class TestNotifications:
    """Tests for the new-content fan-out job and the inbox."""

    def test_targeted_news_notifies_group_only(self, db, make_group, make_user, identity_of, session_factory) -> None:
        group = make_group("Ops")
        author = make_user(role="admin")
        member = make_user(member_of=[group])
        lead = make_user(admin_of=[group])
        make_user()
        news = NewsRepository(db).create(
            identity_of(author), {"title": "Ops update", "is_published": True, "target_group_ids": [group.id]}
        )

        mailer = FakeMailer()
        count = notifications.notify_new_content("news", news.id, session_factory=session_factory, mailer=mailer)

        assert count == 2
        recipients = {n.user_id for n in db.query(Notification)}
        assert recipients == {member.id, lead.id}
        assert mailer.sent == [([member.email, lead.email], "New article: Ops update")]

    def test_untargeted_news_notifies_everyone_but_author(self, db, make_user, identity_of, session_factory) -> None:
        author = make_user(role="editor")
        readers = [make_user(), make_user()]
        news = NewsRepository(db).create(identity_of(author), {"title": "All hands", "is_published": True})
        count = notifications.notify_new_content("news", news.id, session_factory=session_factory, mailer=FakeMailer())
        assert count == len(readers)

    def test_missing_content_is_skipped(self, session_factory) -> None:
        assert notifications.notify_new_content("event", 12345, session_factory=session_factory, mailer=FakeMailer()) == 0

    def test_publish_job_runs_through_queue(self, db, make_user, identity_of, session_factory, tasks) -> None:
        author, reader = make_user(role="editor"), make_user()
        NewsRepository(db, tasks).create(identity_of(author), {"title": "Queued", "is_published": True})
        tasks.run_all(session_factory=session_factory)
        assert notifications.unread_count(db, reader.id) == 1
        assert profile_summary(db, author.id)["total_xp"] == 20 + 200
        assert "first_news" in unlocked(db, author.id)

    def test_inbox_read_state(self, db, make_user) -> None:
        user, other = make_user(), make_user()
        notifications.notify_users(db, {user.id}, "system", "First")
        notifications.notify_users(db, {user.id}, "system", "Second")
        items, total = notifications.list_notifications(db, user.id, 1, 20)
        assert total == 2

        notifications.mark_read(db, user.id, items[0].id)
        assert notifications.unread_count(db, user.id) == 1
        assert notifications.mark_all_read(db, user.id) == 1
        unread, _ = notifications.list_notifications(db, user.id, 1, 20, unread_only=True)
        assert unread == []

        with pytest.raises(NotFoundError):
            notifications.mark_read(db, other.id, items[0].id)
