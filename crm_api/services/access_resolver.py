"""Access resolver — role, module and branch decisions for an identity."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from crm_api.core.config import settings
from crm_api.core.exceptions import AuthorizationError
from crm_api.core.roles import RoleHierarchy, default_hierarchy
from crm_api.models.module_permission import AccessLevel
from crm_api.services.permission_store import OPERATIONS, Identity

logger = logging.getLogger("crm_api.access")


@dataclass(frozen=True)
class Unrestricted:
    """No branch constraint."""


@dataclass(frozen=True)
class FixedTo:
    branch: str


BranchScope = Union[Unrestricted, FixedTo]


class AccessResolver:
    """Stateless decisions over an identity snapshot and a role hierarchy."""

    def __init__(self, hierarchy: RoleHierarchy, ownership_bypass_role: Optional[str] = None):
        self.hierarchy = hierarchy
        self.ownership_bypass_role = ownership_bypass_role

    def is_top(self, identity: Identity) -> bool:
        return self.hierarchy.is_top(identity.role)

    def has_minimum_role(self, role: str, required_roles: Iterable[str]) -> bool:
        """True if ``role`` is listed or ranks at least as high as every listed role.

        Unknown roles rank 0 on both sides.
        """
        required = set(required_roles)
        if not required:
            return True
        if role in required:
            return True
        return self.hierarchy.rank(role) >= max(self.hierarchy.rank(r) for r in required)

    def can_access_module(self, identity: Identity, module: str, operation: Optional[str] = None) -> bool:
        if operation is not None and operation not in OPERATIONS:
            raise ValueError(f"Unknown operation '{operation}'")

        if self.is_top(identity):
            return True

        grant = identity.grant_for(module)
        if grant is None:
            return False

        if operation is None:
            return grant.access_level != AccessLevel.none

        if grant.has_explicit_flags:
            return bool(grant.flag(operation))
        return grant.access_level == AccessLevel.crud

    def branch_scope(self, identity: Identity, requested_branch: Optional[str] = None) -> BranchScope:
        """Branch constraint for queries made on behalf of ``identity``.

        Raises:
            AuthorizationError: a non-top identity asked for another branch,
                or has no branch assigned.
        """
        if requested_branch == "":
            requested_branch = None

        if self.is_top(identity):
            if requested_branch is None:
                return Unrestricted()
            return FixedTo(requested_branch)

        if not identity.branch:
            logger.info("User %s has no branch assigned; denying branch data", identity.id)
            raise AuthorizationError("No branch assigned")

        if requested_branch is not None and requested_branch != identity.branch:
            raise AuthorizationError("Cannot access data from other branches")
        return FixedTo(identity.branch)

    def can_modify_owned(self, identity: Identity, owner_emails: Iterable[Optional[str]]) -> bool:
        """True if ``identity`` owns the record or ranks high enough to skip ownership.

        Top rank always passes; so does anyone ranked at least the configured
        bypass role. Otherwise the identity's email must match one of
        ``owner_emails`` (assignee, creator), compared case-insensitively.
        """
        if self.is_top(identity):
            return True
        if self.ownership_bypass_role and self.has_minimum_role(identity.role, {self.ownership_bypass_role}):
            return True
        owners = {email.strip().lower() for email in owner_emails if email}
        return identity.email.lower() in owners

    def require_role(self, identity: Identity, required_roles: Iterable[str]) -> None:
        if not self.has_minimum_role(identity.role, required_roles):
            raise AuthorizationError("Insufficient permissions")

    def require_module(self, identity: Identity, module: str, operation: Optional[str] = None) -> None:
        if self.can_access_module(identity, module, operation):
            return
        if operation is None:
            raise AuthorizationError(f"No access to {module} module")
        raise AuthorizationError(f"Cannot {operation} in {module} module")

    def require_ownership(self, identity: Identity, owner_emails: Iterable[Optional[str]]) -> None:
        if not self.can_modify_owned(identity, owner_emails):
            raise AuthorizationError("Cannot modify this resource")


def get_access_resolver() -> AccessResolver:
    """FastAPI dependency; override in tests to swap the hierarchy."""
    return AccessResolver(default_hierarchy(), settings.OWNERSHIP_BYPASS_ROLE)
