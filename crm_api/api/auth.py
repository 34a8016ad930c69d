"""Auth API router — login, verify, refresh, logout, me."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from crm_api.api.deps import get_bearer_token, get_current_identity
from crm_api.db.session import get_db
from crm_api.schemas.schemas import (
    LoginRequest, TokenRequest, LoginResponse, VerifyResponse,
    RefreshResponse, IdentityOut, MessageResponse,
)
from crm_api.services.auth_service import auth_service
from crm_api.services.audit_service import audit_service
from crm_api.services.permission_store import Identity

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return a bearer token."""
    token, identity = auth_service.authenticate(db, body.email, body.password)
    audit_service.record(db, "user.login", "user", identity.id, actor=identity, request=request)
    return {"token": token, "user": identity.to_public_dict()}


@router.post("/verify", response_model=VerifyResponse)
async def verify(body: TokenRequest, db: Session = Depends(get_db)):
    """Verify a token and return fresh user data."""
    return auth_service.verify(db, body.token)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(body: TokenRequest, db: Session = Depends(get_db)):
    """Re-issue a token for a user who is still Active."""
    return auth_service.refresh(db, body.token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    token: str = Depends(get_bearer_token),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Revoke the session of the presented token."""
    auth_service.logout(db, token)
    audit_service.record(db, "user.logout", "user", identity.id, actor=identity, request=request)
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=IdentityOut)
async def get_me(identity: Identity = Depends(get_current_identity)):
    """Get current user profile."""
    return identity.to_public_dict()
