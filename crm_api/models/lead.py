"""Lead model."""

from sqlalchemy import Column, Integer, String, Text, DateTime, func
from crm_api.db.base import Base


class Lead(Base):
    """Prospective student enquiry, owned by a branch."""
    __tablename__ = "leads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    status = Column(String(50), default="new", nullable=False)  # new, contacted, qualified, converted, lost
    branch = Column(String(255), nullable=True, index=True)
    assigned_to_email = Column(String(255), nullable=True)
    remarks = Column(Text, nullable=True)
    created_by_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
