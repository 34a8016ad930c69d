"""Audit service — append-only trail of logins and access changes."""

import json
import logging
from typing import Optional, Any

from fastapi import Request
from sqlalchemy.orm import Session

from crm_api.models.audit_log import AuditLog
from crm_api.services.permission_store import Identity

logger = logging.getLogger("crm_api.audit")


def _to_json(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


class AuditService:
    """Writes and queries audit entries. Entries are never updated or deleted."""

    @staticmethod
    def record(
        db: Session,
        action: str,
        resource_type: str,
        resource_id: Optional[Any] = None,
        actor: Optional[Identity] = None,
        request: Optional[Request] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
    ) -> AuditLog:
        """Append one entry and commit it straight away.

        Args:
            action: dotted event name, e.g. ``user.login`` or ``user.permissions_changed``.
            resource_type: ``user``, ``branch`` or ``lead``.
            actor: who did it; the role is stored as it was at the time.
            request: source of the client address and user agent.
        """
        entry = AuditLog(
            actor_id=actor.id if actor else None,
            actor_email=actor.email if actor else None,
            actor_role=actor.role if actor else None,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id is not None else None,
            old_value_json=_to_json(old_value),
            new_value_json=_to_json(new_value),
        )
        if request is not None:
            entry.ip_address = request.client.host if request.client else None
            entry.user_agent = request.headers.get("user-agent", "")[:500]

        db.add(entry)
        db.commit()
        logger.info("%s %s:%s by %s", action, resource_type, entry.resource_id, entry.actor_email or "system")
        return entry

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[int] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ):
        """Newest-first page of entries matching the filters.

        ``action`` matches as a prefix, so ``user.`` selects every user event.
        """
        query = db.query(AuditLog)

        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.startswith(action))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.filter(AuditLog.resource_id == resource_id)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"logs": logs, "total": total, "page": page}


audit_service = AuditService()
