"""Admin API router — user administration, module permissions, audit."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from crm_api.api.deps import get_branch_scope, require_admin
from crm_api.core.exceptions import AuthorizationError
from crm_api.db.session import get_db
from crm_api.schemas.schemas import (
    AuditLogOut, UserOut, UserCreateRequest, UserUpdateRequest,
    PermissionsUpdateRequest, MessageResponse,
)
from crm_api.services.access_resolver import AccessResolver, BranchScope, get_access_resolver
from crm_api.services.audit_service import audit_service
from crm_api.services.auth_service import auth_service
from crm_api.services.permission_store import Identity, permission_store

logger = logging.getLogger("crm_api")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users")
async def admin_list_users(
    status: Optional[str] = Query(None, pattern="^(Active|Dormant|Inactive)$"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
    scope: BranchScope = Depends(get_branch_scope),
):
    """List users in the caller's branch scope (admin only)."""
    result = auth_service.list_users(db, scope, status, page, page_size)
    return {
        "users": [UserOut.model_validate(u) for u in result["users"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.post("/users", response_model=UserOut, status_code=201)
async def admin_create_user(
    body: UserCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
    resolver: AccessResolver = Depends(get_access_resolver),
):
    """Create a user (admin only). Non-top admins create users in their own branch."""
    branch = body.branch
    if branch is None and not resolver.is_top(identity):
        branch = identity.branch
    auth_service.check_can_assign(resolver, identity, body.role, branch)

    user = auth_service.create_user(
        db, body.email, body.password, body.full_name,
        body.role, branch, body.permissions,
    )
    audit_service.record(
        db, "user.created", "user", user.id, actor=identity, request=request,
        new_value={"email": user.email, "role": user.role, "branch": user.branch},
    )
    return user


@router.get("/users/{user_id}")
async def admin_get_user(
    user_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
    scope: BranchScope = Depends(get_branch_scope),
):
    """Get a user with resolved module grants."""
    user = auth_service.get_user(db, user_id, scope)
    target = permission_store.to_identity(user)
    return {
        **UserOut.model_validate(user).model_dump(),
        "grants": [g.to_dict() for g in target.grants.values()],
    }


@router.put("/users/{user_id}", response_model=UserOut)
async def admin_update_user(
    user_id: int,
    body: UserUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
    scope: BranchScope = Depends(get_branch_scope),
    resolver: AccessResolver = Depends(get_access_resolver),
):
    """Update a user's name, role, branch or status (admin only)."""
    user = auth_service.get_user(db, user_id, scope)
    auth_service.check_can_assign(resolver, identity, body.role, body.branch)
    if not resolver.is_top(identity) and resolver.hierarchy.is_top(user.role):
        raise AuthorizationError("Cannot modify a top-rank user")

    old = {"role": user.role, "branch": user.branch, "status": user.status.value}
    user = auth_service.update_user(
        db, user, body.full_name, body.role, body.branch, body.status,
    )
    audit_service.record(
        db, "user.updated", "user", user.id, actor=identity, request=request,
        old_value=old,
        new_value={"role": user.role, "branch": user.branch, "status": user.status.value},
    )
    return user


@router.put("/users/{user_id}/permissions", response_model=MessageResponse)
async def admin_set_permissions(
    user_id: int,
    body: PermissionsUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
    scope: BranchScope = Depends(get_branch_scope),
):
    """Replace a user's module permissions (admin only)."""
    user = auth_service.get_user(db, user_id, scope)
    grants = [g.model_dump() for g in body.grants]
    auth_service.set_module_permissions(db, user, grants, body.modules)
    audit_service.record(
        db, "user.permissions_changed", "user", user.id, actor=identity, request=request,
        new_value={"grants": grants, "modules": body.modules},
    )
    return MessageResponse(message="Permissions updated")


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Query audit logs (admin only)."""
    result = audit_service.query_logs(
        db, actor_id, action, resource_type, resource_id, page, page_size,
    )
    return {
        "logs": [
            AuditLogOut.model_validate(log)
            for log in result["logs"]
        ],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """System health check — database reachability."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)

    return {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
