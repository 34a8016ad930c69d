"""Models package — import all models so metadata.create_all can discover them."""

from crm_api.models.branch import Branch
from crm_api.models.user import User, UserStatus
from crm_api.models.module_permission import ModulePermission, AccessLevel
from crm_api.models.user_session import UserSession
from crm_api.models.lead import Lead
from crm_api.models.audit_log import AuditLog

__all__ = [
    "Branch", "User", "UserStatus", "ModulePermission", "AccessLevel",
    "UserSession", "Lead", "AuditLog",
]
