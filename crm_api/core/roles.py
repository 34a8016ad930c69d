"""Ranked role hierarchy used for role-gated checks."""

from types import MappingProxyType
from typing import Mapping, Optional

from crm_api.core.config import settings


class RoleHierarchy:
    """Immutable mapping of role name to integer rank.

    Unknown role names rank 0. Every role holding the maximum rank is
    considered top rank.
    """

    def __init__(self, levels: Mapping[str, int]):
        if not levels:
            raise ValueError("Role hierarchy needs at least one role")
        self._levels = MappingProxyType(dict(levels))
        self._top_rank = max(self._levels.values())

    @property
    def levels(self) -> Mapping[str, int]:
        return self._levels

    @property
    def roles(self) -> list[str]:
        """Role names ordered from most to least privileged."""
        return sorted(self._levels, key=lambda r: self._levels[r], reverse=True)

    @property
    def top_rank(self) -> int:
        return self._top_rank

    @property
    def top_role(self) -> str:
        return self.roles[0]

    def knows(self, role: Optional[str]) -> bool:
        return role in self._levels

    def rank(self, role: Optional[str]) -> int:
        if role is None:
            return 0
        return self._levels.get(role, 0)

    def is_top(self, role: Optional[str]) -> bool:
        return self.knows(role) and self.rank(role) == self._top_rank

    def __contains__(self, role: object) -> bool:
        return role in self._levels

    def __repr__(self) -> str:
        return f"RoleHierarchy({dict(self._levels)!r})"


_default_hierarchy: Optional[RoleHierarchy] = None


def default_hierarchy() -> RoleHierarchy:
    """Hierarchy built once from ``settings.ROLE_LEVELS``."""
    global _default_hierarchy
    if _default_hierarchy is None:
        _default_hierarchy = RoleHierarchy(settings.ROLE_LEVELS)
    return _default_hierarchy
