"""
Tests for roles and group-scoped visibility.
"""

from datetime import datetime, timedelta

import pytest

from app.core.errors import AuthorizationError
from app.core.identity import Editor, GlobalAdmin, GroupAdmin, Identity, RegularUser, resolve_role
from app.services.news import NewsRepository
from app.services.visibility import (
    AccessView, ViewMode, can_edit, can_manage_app_group, can_view, check_target_groups,
)

NOW = datetime(2026, 3, 2, 12, 0)


def view(author_id=None, targets=(), published=True, published_at=None) -> AccessView:
    return AccessView(
        author_id=author_id,
        is_published=published,
        published_at=published_at,
        target_group_ids=frozenset(targets),
    )


def user(user_id=10, members=()) -> Identity:
    return Identity(user_id, RegularUser(), frozenset(members))


def group_admin(user_id=20, managed=(1,), members=()) -> Identity:
    return Identity(user_id, GroupAdmin(frozenset(managed)), frozenset(members))


ADMIN = Identity(1, GlobalAdmin())
EDITOR = Identity(2, Editor())


class TestResolveRole:
    """Tests for folding the stored role and managed groups into one variant."""

    def test_admin_wins_over_managed_groups(self) -> None:
        assert resolve_role("admin", {1, 2}) == GlobalAdmin()

    def test_managed_groups_make_group_admin(self) -> None:
        """A plain user or an editor administering a group is a group admin."""
        assert resolve_role("user", {3}) == GroupAdmin(frozenset({3}))
        assert resolve_role("editor", {3}) == GroupAdmin(frozenset({3}), is_editor=True)

    def test_editor_rights_survive_group_administration(self) -> None:
        identity = Identity(5, resolve_role("editor", {3}))
        assert identity.is_editor
        assert identity.is_group_admin
        assert identity.managed_group_ids == {3}
        assert not Identity(6, resolve_role("user", {3})).is_editor

    def test_stored_role_without_managed_groups(self) -> None:
        assert resolve_role("editor", set()) == Editor()
        assert resolve_role("user", None) == RegularUser()

    def test_reachable_groups_combine_memberships_and_managed(self) -> None:
        identity = group_admin(managed=(1, 2), members=(5,))
        assert identity.reachable_group_ids == {1, 2, 5}
        assert identity.can_author
        assert not user().can_author


class TestDefaultDeny:
    """Targeted content is hidden from everyone outside its groups."""

    @pytest.mark.parametrize(
        "identity",
        [user(members=(7,)), EDITOR, group_admin(managed=(8,))],
        ids=["user", "editor", "group_admin"],
    )
    def test_outsiders_cannot_see_targeted_content(self, identity: Identity) -> None:
        item = view(author_id=99, targets=(1,))
        assert not can_view(identity, item, ViewMode.PUBLIC, NOW)
        assert not can_view(identity, item, ViewMode.MANAGE, NOW)

    def test_member_sees_targeted_content(self) -> None:
        assert can_view(user(members=(1,)), view(author_id=99, targets=(1, 2)), now=NOW)

    def test_group_admin_of_target_sees_content(self) -> None:
        assert can_view(group_admin(managed=(2,)), view(author_id=99, targets=(1, 2)), now=NOW)

    def test_global_admin_sees_everything(self) -> None:
        assert can_view(ADMIN, view(author_id=99, targets=(1,), published=False), now=NOW)

    def test_author_always_sees_own_content(self) -> None:
        assert can_view(user(user_id=5), view(author_id=5, targets=(1,), published=False), now=NOW)


class TestGlobalVisibility:
    """Published untargeted content is visible to every role."""

    @pytest.mark.parametrize("identity", [user(), EDITOR, group_admin(), ADMIN])
    def test_published_untargeted_is_visible(self, identity: Identity) -> None:
        item = view(author_id=99, published_at=NOW - timedelta(minutes=1))
        assert can_view(identity, item, ViewMode.PUBLIC, NOW)

    def test_draft_is_hidden(self) -> None:
        assert not can_view(user(), view(author_id=99, published=False), now=NOW)

    def test_scheduled_is_hidden_until_publish_time(self) -> None:
        item = view(author_id=99, published_at=NOW + timedelta(hours=1))
        assert not can_view(user(), item, now=NOW)
        assert can_view(user(), item, now=NOW + timedelta(hours=2))

    def test_manage_mode_excludes_untargeted_content_of_others(self) -> None:
        assert not can_view(group_admin(), view(author_id=99), ViewMode.MANAGE, NOW)


class TestEditRestriction:
    """Group admins never edit untargeted content they did not write."""

    def test_group_admin_cannot_edit_untargeted(self) -> None:
        assert not can_edit(group_admin(managed=(1, 2, 3)), view(author_id=99))

    def test_group_admin_can_edit_content_targeting_managed_group(self) -> None:
        assert can_edit(group_admin(managed=(1,)), view(author_id=99, targets=(1, 4)))

    def test_author_and_admin_can_edit(self) -> None:
        assert can_edit(user(user_id=99), view(author_id=99))
        assert can_edit(ADMIN, view(author_id=99))

    def test_editor_cannot_edit_others_content(self) -> None:
        assert not can_edit(EDITOR, view(author_id=99))


class TestTargetGroupGuard:
    """Tests for the target-group assignment guard."""

    def test_subset_of_managed_groups_is_accepted(self) -> None:
        check_target_groups(group_admin(managed=(1, 2)), [1])

    def test_any_unmanaged_group_is_rejected(self) -> None:
        with pytest.raises(AuthorizationError) as exc_info:
            check_target_groups(group_admin(managed=(1, 2)), [1, 3])
        assert exc_info.value.error_code == "target_group_not_managed"

    def test_admin_may_target_any_group(self) -> None:
        check_target_groups(ADMIN, [100, 200])

    def test_editor_without_managed_groups_may_target_any_group(self) -> None:
        check_target_groups(EDITOR, [100, 200])

    def test_editor_who_administers_a_group_is_restricted(self) -> None:
        editor_lead = Identity(3, GroupAdmin(frozenset({1}), is_editor=True))
        with pytest.raises(AuthorizationError):
            check_target_groups(editor_lead, [2])


class TestAppGroupManagement:
    """Tests for can_manage_app_group."""

    def test_public_app_group_is_admin_only(self) -> None:
        assert not can_manage_app_group(group_admin(managed=(1,)), False, [1])
        assert can_manage_app_group(ADMIN, False, [])

    def test_private_app_group_linked_to_managed_group(self) -> None:
        assert can_manage_app_group(group_admin(managed=(1,)), True, [1, 2])
        assert not can_manage_app_group(group_admin(managed=(1,)), True, [2])


class TestListScenario:
    """The A/B group scenario against the SQL visibility clause."""

    @pytest.fixture
    def setup(self, db, make_group, make_user, identity_of):
        group_a = make_group("Group A")
        group_b = make_group("Group B")
        admin = make_user(role="admin")
        reader = make_user(member_of=[group_a])
        ga = make_user(admin_of=[group_a])

        repo = NewsRepository(db)
        admin_identity = identity_of(admin)
        n1 = repo.create(admin_identity, {"title": "N1", "is_published": True, "target_group_ids": [group_a.id]})
        n2 = repo.create(admin_identity, {"title": "N2", "is_published": True, "target_group_ids": [group_b.id]})
        n3 = repo.create(admin_identity, {"title": "N3", "is_published": True})
        return {
            "repo": repo,
            "admin": admin_identity,
            "reader": identity_of(reader),
            "group_admin": identity_of(ga),
            "news": (n1, n2, n3),
        }

    def titles(self, repo, identity, mode=ViewMode.PUBLIC):
        items, total = repo.list(identity, mode=mode)
        assert total == len(items)
        return {item.title for item in items}

    def test_member_sees_own_group_and_global(self, setup) -> None:
        assert self.titles(setup["repo"], setup["reader"]) == {"N1", "N3"}

    def test_admin_sees_all(self, setup) -> None:
        assert self.titles(setup["repo"], setup["admin"]) == {"N1", "N2", "N3"}

    def test_group_admin_manage_view(self, setup) -> None:
        """Targeted news of the managed group, but not global news by someone else."""
        assert self.titles(setup["repo"], setup["group_admin"], ViewMode.MANAGE) == {"N1"}

    def test_group_admin_manage_view_includes_own_news(self, setup) -> None:
        repo, ga = setup["repo"], setup["group_admin"]
        repo.create(ga, {"title": "Mine", "is_published": False, "target_group_ids": []})
        assert self.titles(repo, ga, ViewMode.MANAGE) == {"N1", "Mine"}

    def test_single_fetch_agrees_with_list(self, setup) -> None:
        repo, reader = setup["repo"], setup["reader"]
        n1, n2, n3 = setup["news"]
        assert repo.get(reader, item_id=n1.id).id == n1.id
        with pytest.raises(AuthorizationError):
            repo.get(reader, item_id=n2.id)
        assert repo.get(reader, slug=n3.slug).id == n3.id
