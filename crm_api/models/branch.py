"""Branch model."""

from sqlalchemy import Column, Integer, String, DateTime, func
from crm_api.db.base import Base


class Branch(Base):
    """Organizational location; scopes data visibility for non-top roles."""
    __tablename__ = "branches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    code = Column(String(50), unique=True, nullable=True)
    city = Column(String(100), nullable=True)
    status = Column(String(20), default="Active", nullable=False)  # Active, Inactive
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
