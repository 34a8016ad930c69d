"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime

from crm_api.models.module_permission import AccessLevel
from crm_api.models.user import UserStatus


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)

class TokenRequest(BaseModel):
    token: str = Field(..., min_length=1)

class IdentityOut(BaseModel):
    id: int
    email: str
    name: str
    role: str
    branch: Optional[str] = None
    permissions: List[str] = []

class LoginResponse(BaseModel):
    token: str
    user: IdentityOut

class VerifyResponse(BaseModel):
    valid: bool
    user: IdentityOut

class RefreshResponse(BaseModel):
    token: str


# ---- User ----
def _clean_role(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("role must not be blank")
    return value

class UserOut(BaseModel):
    id: int
    email: str
    full_name: str
    role: str
    status: UserStatus
    branch: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserCreateRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=1)
    role: str = Field("Staff", min_length=1)
    branch: Optional[str] = None
    permissions: List[str] = []

    @field_validator("role")
    @classmethod
    def strip_role(cls, value: str) -> str:
        return _clean_role(value)

class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = None
    role: Optional[str] = None
    branch: Optional[str] = None
    status: Optional[UserStatus] = None

    @field_validator("role")
    @classmethod
    def strip_role(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _clean_role(value)

class ModuleGrantIn(BaseModel):
    module: str = Field(..., min_length=1)
    access_level: AccessLevel = AccessLevel.view
    can_add: Optional[bool] = None
    can_edit: Optional[bool] = None
    can_delete: Optional[bool] = None

class PermissionsUpdateRequest(BaseModel):
    grants: List[ModuleGrantIn] = []
    modules: Optional[List[str]] = None


# ---- Branch ----
class BranchCreate(BaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = None
    city: Optional[str] = None

class BranchOut(BaseModel):
    id: int
    name: str
    code: Optional[str] = None
    city: Optional[str] = None
    status: str

    class Config:
        from_attributes = True


# ---- Lead ----
class LeadCreate(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: Optional[str] = None
    email: str = Field(..., min_length=3)
    phone: Optional[str] = None
    status: str = "new"
    branch: Optional[str] = None
    assigned_to_email: Optional[str] = None
    remarks: Optional[str] = None

class LeadUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: Optional[str] = None
    assigned_to_email: Optional[str] = None
    remarks: Optional[str] = None

class LeadOut(BaseModel):
    id: int
    first_name: str
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    status: str
    branch: Optional[str] = None
    assigned_to_email: Optional[str] = None
    remarks: Optional[str] = None
    created_by_email: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Common ----
class MessageResponse(BaseModel):
    message: str
