"""Dashboard user model."""

import enum

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, func
from sqlalchemy.orm import relationship
from crm_api.db.base import Base


class UserStatus(str, enum.Enum):
    Active = "Active"
    Dormant = "Dormant"
    Inactive = "Inactive"


class User(Base):
    """CRM staff identity with a role, an optional branch and module grants.

    Users are soft-disabled through ``status``; rows referenced by history
    are never deleted.
    """
    __tablename__ = "dashboard_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, nullable=False, index=True)  # stored lower-cased
    hashed_password = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False, index=True)
    status = Column(Enum(UserStatus), default=UserStatus.Active, nullable=False)
    branch = Column(String(255), nullable=True, index=True)
    permissions_json = Column(Text, nullable=True)  # legacy JSON list of module names
    last_login_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    module_permissions = relationship(
        "ModulePermission",
        back_populates="user",
        lazy="selectin",
        cascade="all, delete-orphan",
    )
