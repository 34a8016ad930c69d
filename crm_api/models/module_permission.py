"""Per-module permission rows with optional CRUD operation flags."""

import enum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Enum, ForeignKey,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from crm_api.db.base import Base


class AccessLevel(str, enum.Enum):
    none = "None"
    view = "View"
    crud = "CRUD"


class ModulePermission(Base):
    """Access of one user to one module.

    ``can_add``/``can_edit``/``can_delete`` are nullable: NULL means "not
    set", in which case the coarse ``access_level`` decides.
    """
    __tablename__ = "module_permissions"
    __table_args__ = (UniqueConstraint("user_id", "module", name="uq_user_module"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("dashboard_users.id", ondelete="CASCADE"), nullable=False, index=True)
    module = Column(String(100), nullable=False, index=True)
    access_level = Column(
        Enum(AccessLevel, values_callable=lambda e: [m.value for m in e]),
        default=AccessLevel.view,
        nullable=False,
    )
    can_add = Column(Boolean, nullable=True)
    can_edit = Column(Boolean, nullable=True)
    can_delete = Column(Boolean, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="module_permissions")
