"""Lead service — branch-scoped CRUD for leads."""

from typing import Optional, Dict, Any

from sqlalchemy import or_
from sqlalchemy.orm import Session

from crm_api.models.lead import Lead
from crm_api.core.exceptions import ResourceNotFoundError
from crm_api.services.access_resolver import BranchScope, FixedTo
from crm_api.services.branch_filter import apply_branch_scope


class LeadService:
    """Every read and write goes through the caller's branch scope."""

    @staticmethod
    def _scoped(db: Session, scope: BranchScope):
        return apply_branch_scope(db.query(Lead), scope, Lead.branch)

    @staticmethod
    def create(db: Session, scope: BranchScope, created_by_email: str, **fields) -> Lead:
        """Create a lead in the scope's branch (or unassigned when unrestricted)."""
        fields["branch"] = scope.branch if isinstance(scope, FixedTo) else None
        fields["email"] = fields["email"].strip().lower()
        lead = Lead(created_by_email=created_by_email, **fields)
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    @staticmethod
    def get(db: Session, scope: BranchScope, lead_id: int) -> Lead:
        """Get a lead by id; leads outside the scope are reported as not found."""
        lead = LeadService._scoped(db, scope).filter(Lead.id == lead_id).first()
        if not lead:
            raise ResourceNotFoundError(f"Lead {lead_id} not found")
        return lead

    @staticmethod
    def list_leads(
        db: Session,
        scope: BranchScope,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        """List leads with filters."""
        query = LeadService._scoped(db, scope)

        if status:
            query = query.filter(Lead.status == status)
        if assigned_to:
            query = query.filter(Lead.assigned_to_email == assigned_to.lower())
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Lead.first_name.ilike(term),
                Lead.last_name.ilike(term),
                Lead.email.ilike(term),
                Lead.phone.ilike(term),
            ))

        total = query.count()
        leads = (
            query.order_by(Lead.created_at.desc(), Lead.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"leads": leads, "total": total, "page": page}

    @staticmethod
    def update(db: Session, lead: Lead, **kwargs) -> Lead:
        """Update fields of a lead already loaded through ``get``."""
        if kwargs.get("email"):
            kwargs["email"] = kwargs["email"].strip().lower()
        for key, value in kwargs.items():
            setattr(lead, key, value)
        db.commit()
        db.refresh(lead)
        return lead

    @staticmethod
    def delete(db: Session, lead: Lead) -> None:
        """Delete a lead already loaded through ``get``."""
        db.delete(lead)
        db.commit()


lead_service = LeadService()
