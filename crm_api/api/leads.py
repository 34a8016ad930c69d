"""Leads API router — branch-scoped CRUD gated by the ``leads`` module."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from crm_api.api.deps import RequireModule, get_branch_scope, get_current_identity
from crm_api.db.session import get_db
from crm_api.models.lead import Lead
from crm_api.schemas.schemas import LeadCreate, LeadUpdate, LeadOut, MessageResponse
from crm_api.services.access_resolver import AccessResolver, BranchScope, get_access_resolver
from crm_api.services.lead_service import lead_service
from crm_api.services.permission_store import Identity

MODULE = "leads"

router = APIRouter(prefix="/leads", tags=["leads"])


async def get_owned_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    scope: BranchScope = Depends(get_branch_scope),
    resolver: AccessResolver = Depends(get_access_resolver),
) -> Lead:
    """The lead, if visible in scope (else 404) and owned by the caller (else 403)."""
    lead = lead_service.get(db, scope, lead_id)
    resolver.require_ownership(identity, (lead.assigned_to_email, lead.created_by_email))
    return lead


@router.get("/")
async def list_leads(
    status: Optional[str] = Query(None),
    assigned_to: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: Identity = Depends(RequireModule(MODULE)),
    scope: BranchScope = Depends(get_branch_scope),
):
    """List leads in the caller's branch scope."""
    result = lead_service.list_leads(db, scope, status, assigned_to, search, page, page_size)
    return {
        "leads": [LeadOut.model_validate(lead) for lead in result["leads"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/{lead_id}", response_model=LeadOut)
async def get_lead(
    lead_id: int,
    db: Session = Depends(get_db),
    identity: Identity = Depends(RequireModule(MODULE)),
    scope: BranchScope = Depends(get_branch_scope),
):
    """Get a single lead."""
    return lead_service.get(db, scope, lead_id)


@router.post("/", response_model=LeadOut, status_code=201)
async def create_lead(
    body: LeadCreate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(RequireModule(MODULE, "add")),
    resolver: AccessResolver = Depends(get_access_resolver),
):
    """Create a lead; the target branch is checked like a branch override."""
    scope = resolver.branch_scope(identity, body.branch)
    fields = body.model_dump(exclude={"branch"})
    return lead_service.create(db, scope, identity.email, **fields)


@router.put("/{lead_id}", response_model=LeadOut)
async def update_lead(
    body: LeadUpdate,
    db: Session = Depends(get_db),
    identity: Identity = Depends(RequireModule(MODULE, "edit")),
    lead: Lead = Depends(get_owned_lead),
):
    """Update a lead the caller owns (or may modify regardless of owner)."""
    return lead_service.update(db, lead, **body.model_dump(exclude_unset=True))


@router.delete("/{lead_id}", response_model=MessageResponse)
async def delete_lead(
    db: Session = Depends(get_db),
    identity: Identity = Depends(RequireModule(MODULE, "delete")),
    lead: Lead = Depends(get_owned_lead),
):
    """Delete a lead the caller owns (or may modify regardless of owner)."""
    lead_service.delete(db, lead)
    return MessageResponse(message="Lead deleted")
