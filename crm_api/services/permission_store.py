"""Permission store — identity snapshots with their module grants.

Two representations back a user's module access:

* ``module_permissions`` rows, with a coarse access level and optional
  add/edit/delete flags;
* the legacy ``permissions_json`` list of module names on the user row.

A row is authoritative for its module. A module that only appears in the
legacy list is granted at ``View`` level with no operation flags, so it can
be listed but not mutated. Nothing is cached: every load reads the store.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from crm_api.models.module_permission import AccessLevel, ModulePermission
from crm_api.models.user import User, UserStatus

logger = logging.getLogger("crm_api.permissions")

OPERATIONS = ("add", "edit", "delete")


@dataclass(frozen=True)
class ModuleGrant:
    module: str
    access_level: AccessLevel
    can_add: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None

    @property
    def has_explicit_flags(self) -> bool:
        return any(flag is not None for flag in (self.can_add, self.can_edit, self.can_delete))

    def flag(self, operation: str) -> Optional[bool]:
        return getattr(self, f"can_{operation}")

    def to_dict(self) -> dict:
        return {
            "module": self.module,
            "access_level": self.access_level.value,
            "can_add": self.can_add,
            "can_edit": self.can_edit,
            "can_delete": self.can_delete,
        }


@dataclass(frozen=True)
class Identity:
    """Per-request identity context; both ``id`` and ``email`` are always set."""

    id: int
    email: str
    full_name: str
    role: str
    status: UserStatus
    branch: Optional[str] = None
    grants: Mapping[str, ModuleGrant] = field(default_factory=dict)

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.Active

    @property
    def modules(self) -> List[str]:
        """Modules with any access, sorted."""
        return sorted(m for m, g in self.grants.items() if g.access_level != AccessLevel.none)

    def grant_for(self, module: str) -> Optional[ModuleGrant]:
        return self.grants.get(module)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.full_name,
            "role": self.role,
            "branch": self.branch,
            "permissions": self.modules,
        }


def parse_legacy_permissions(raw: Optional[str]) -> List[str]:
    """Parse the legacy JSON module list; malformed input counts as empty."""
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring malformed permissions list: %r", raw[:100])
        return []
    if not isinstance(value, list):
        logger.warning("Ignoring non-list permissions value: %r", raw[:100])
        return []
    return [str(m) for m in value if m]


def build_grants(legacy_modules: List[str], rows: List[ModulePermission]) -> Dict[str, ModuleGrant]:
    grants: Dict[str, ModuleGrant] = {
        module: ModuleGrant(module=module, access_level=AccessLevel.view)
        for module in legacy_modules
    }
    for row in rows:
        grants[row.module] = ModuleGrant(
            module=row.module,
            access_level=AccessLevel(row.access_level),
            can_add=row.can_add,
            can_edit=row.can_edit,
            can_delete=row.can_delete,
        )
    return grants


class PermissionStore:
    """Loads identities with their grants straight from the database."""

    @staticmethod
    def to_identity(user: User) -> Identity:
        return Identity(
            id=user.id,
            email=user.email,
            full_name=user.full_name,
            role=user.role,
            status=UserStatus(user.status),
            branch=user.branch,
            grants=build_grants(
                parse_legacy_permissions(user.permissions_json),
                list(user.module_permissions),
            ),
        )

    @staticmethod
    def load(db: Session, user_id: int) -> Optional[Identity]:
        """Load the identity for a canonical user id, or None."""
        user = db.query(User).populate_existing().filter(User.id == user_id).first()
        if user is None:
            return None
        return PermissionStore.to_identity(user)

    @staticmethod
    def load_by_email(db: Session, email: str) -> Optional[Identity]:
        user = db.query(User).populate_existing().filter(User.email == email.strip().lower()).first()
        if user is None:
            return None
        return PermissionStore.to_identity(user)


permission_store = PermissionStore()
