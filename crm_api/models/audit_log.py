"""Audit log model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, func
from crm_api.db.base import Base


class AuditLog(Base):
    """One login, logout or access change.

    Rows are only ever inserted. ``actor_role`` is the role the actor held
    when acting, which may differ from their current one.
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, ForeignKey("dashboard_users.id"), nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    actor_role = Column(String(50), nullable=True)
    action = Column(String(100), nullable=False, index=True)
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(String(100), nullable=True, index=True)
    old_value_json = Column(Text, nullable=True)
    new_value_json = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
