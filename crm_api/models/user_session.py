"""Session record model."""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from crm_api.db.base import Base


class UserSession(Base):
    """Hash of an issued token, kept so the token can be revoked on logout.

    Rows are never updated: created at login/refresh, deleted on logout,
    deactivation or expiry sweep.
    """
    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("dashboard_users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True, index=True)
    issued_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False, index=True)
