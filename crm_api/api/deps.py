"""Request dependencies: bearer authentication, role/module gates, branch scope."""

import logging
from typing import Optional

from fastapi import Depends, Query, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from crm_api.core.exceptions import AuthenticationError, AuthorizationError, InvalidTokenError
from crm_api.db.session import get_db
from crm_api.services.access_resolver import AccessResolver, BranchScope, get_access_resolver
from crm_api.services.auth_service import INACTIVE_USER, auth_service
from crm_api.services.permission_store import Identity

logger = logging.getLogger("crm_api.auth")

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> str:
    """Raw token from ``Authorization: Bearer <token>``."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("No token provided")
    return credentials.credentials


async def get_current_identity(
    request: Request,
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
) -> Identity:
    """Authenticate the request and attach the identity to ``request.state``."""
    try:
        identity = auth_service.resolve_identity(db, token)
    except InvalidTokenError as e:
        logger.info("Rejected bearer token: %s", e.reason.value)
        raise AuthenticationError("Invalid or expired token")
    except AuthenticationError as e:
        if e.message == INACTIVE_USER:
            raise
        raise AuthenticationError("Invalid or expired token")

    request.state.identity = identity
    return identity


class RequireRole:
    """Dependency that passes identities listed in, or ranked at least as high as, ``roles``."""

    def __init__(self, *roles: str):
        if not roles:
            raise ValueError("RequireRole needs at least one role")
        self.roles = frozenset(roles)

    async def __call__(
        self,
        identity: Identity = Depends(get_current_identity),
        resolver: AccessResolver = Depends(get_access_resolver),
    ) -> Identity:
        resolver.require_role(identity, self.roles)
        return identity


class RequireModule:
    """Dependency that checks module access and, optionally, one operation."""

    def __init__(self, module: str, operation: Optional[str] = None):
        self.module = module
        self.operation = operation

    async def __call__(
        self,
        identity: Identity = Depends(get_current_identity),
        resolver: AccessResolver = Depends(get_access_resolver),
    ) -> Identity:
        resolver.require_module(identity, self.module, self.operation)
        return identity


async def get_branch_scope(
    branch: Optional[str] = Query(None, description="Branch override"),
    identity: Identity = Depends(get_current_identity),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> BranchScope:
    """Branch scope for this request; 403 when the override is not allowed."""
    return resolver.branch_scope(identity, branch)


async def require_top_rank(
    identity: Identity = Depends(get_current_identity),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> Identity:
    if not resolver.is_top(identity):
        raise AuthorizationError("Insufficient permissions")
    return identity


# Convenience dependencies
require_admin = RequireRole("Admin")
