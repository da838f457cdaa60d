"""
Per-request identity.

The stored ``users.role`` column only knows ``admin``, ``editor`` and ``user``.
Group administration is derived from ``group_admins`` on every request and folded
into the role variant, so callers never re-check the managed set by hand. An
editor who administers a group keeps the editor rights on the ``GroupAdmin``
variant.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, Union


@dataclass(frozen=True)
class GlobalAdmin:
    name = "admin"


@dataclass(frozen=True)
class Editor:
    name = "editor"


@dataclass(frozen=True)
class GroupAdmin:
    managed_group_ids: FrozenSet[int]
    is_editor: bool = False
    name = "group_admin"


@dataclass(frozen=True)
class RegularUser:
    name = "user"


Role = Union[GlobalAdmin, Editor, GroupAdmin, RegularUser]


def resolve_role(stored_role: str, managed_group_ids) -> Role:
    """Admin wins, then a non-empty managed set, then the stored role."""
    managed = frozenset(managed_group_ids or ())
    if stored_role == "admin":
        return GlobalAdmin()
    if managed:
        return GroupAdmin(managed, is_editor=stored_role == "editor")
    if stored_role == "editor":
        return Editor()
    return RegularUser()


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: Role
    member_group_ids: FrozenSet[int] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return isinstance(self.role, GlobalAdmin)

    @property
    def is_editor(self) -> bool:
        if isinstance(self.role, GroupAdmin):
            return self.role.is_editor
        return isinstance(self.role, Editor)

    @property
    def is_group_admin(self) -> bool:
        return isinstance(self.role, GroupAdmin)

    @property
    def managed_group_ids(self) -> FrozenSet[int]:
        if isinstance(self.role, GroupAdmin):
            return self.role.managed_group_ids
        return frozenset()

    @property
    def reachable_group_ids(self) -> FrozenSet[int]:
        """Groups whose targeted content this user may read."""
        return self.managed_group_ids | self.member_group_ids

    @property
    def can_author(self) -> bool:
        return not isinstance(self.role, RegularUser)
