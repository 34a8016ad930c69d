"""Branches API router."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm_api.api.deps import RequireModule, get_branch_scope, require_top_rank
from crm_api.core.exceptions import ResourceConflictError
from crm_api.db.session import get_db
from crm_api.models.branch import Branch
from crm_api.schemas.schemas import BranchCreate, BranchOut
from crm_api.services.access_resolver import BranchScope
from crm_api.services.audit_service import audit_service
from crm_api.services.branch_filter import apply_branch_scope
from crm_api.services.permission_store import Identity

router = APIRouter(prefix="/branches", tags=["branches"])


@router.get("/")
async def list_branches(
    db: Session = Depends(get_db),
    identity: Identity = Depends(RequireModule("branches")),
    scope: BranchScope = Depends(get_branch_scope),
):
    """List branches; non-top users only see their own."""
    query = apply_branch_scope(db.query(Branch), scope, Branch.name)
    return [BranchOut.model_validate(b) for b in query.order_by(Branch.name).all()]


@router.post("/", response_model=BranchOut, status_code=201)
async def create_branch(
    body: BranchCreate,
    request: Request,
    db: Session = Depends(get_db),
    identity: Identity = Depends(require_top_rank),
):
    """Create a branch (top rank only)."""
    branch = Branch(name=body.name.strip(), code=body.code, city=body.city)
    db.add(branch)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ResourceConflictError(f"Branch '{body.name}' already exists")
    db.refresh(branch)
    audit_service.record(
        db, "branch.created", "branch", branch.id, actor=identity, request=request,
        new_value={"name": branch.name},
    )
    return branch
