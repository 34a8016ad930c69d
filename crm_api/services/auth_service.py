"""Auth service — login, token verification/refresh, logout, user management."""

import json
import logging
import time
from typing import Optional, Dict, Any, List, Iterable, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from crm_api.core.config import settings
from crm_api.core.exceptions import (
    AuthenticationError, AuthorizationError, InvalidTokenError, TokenFailure,
    ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from crm_api.core.security import (
    hash_password, verify_password, issue_token,
    verify_token, verify_token_ignoring_expiry,
)
from crm_api.models.module_permission import AccessLevel, ModulePermission
from crm_api.models.user import User, UserStatus
from crm_api.services.access_resolver import AccessResolver
from crm_api.services.branch_filter import apply_branch_scope
from crm_api.services.permission_store import Identity, permission_store
from crm_api.services.session_service import session_service, utcnow

logger = logging.getLogger("crm_api.auth")

INVALID_CREDENTIALS = "Invalid credentials"
INACTIVE_USER = "User not found or inactive"


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_role(role: str) -> str:
    """Strip surrounding whitespace; a role that is blank afterwards is rejected."""
    role = (role or "").strip()
    if not role:
        raise ValidationError("Role is required")
    return role


_dummy_hash: Optional[str] = None


def _hash_for_missing_user() -> str:
    """A real bcrypt hash to check against when the email is unknown."""
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = hash_password("unknown-user-placeholder")
    return _dummy_hash


class AuthService:
    """Handles authentication and user management."""

    @staticmethod
    def _start_session(db: Session, user: User) -> str:
        """Issue a token for ``user`` and record its session."""
        token = issue_token({
            "id": user.id,
            "email": user.email,
            "role": user.role,
            "branch": user.branch,
        })
        claims = verify_token(token)
        session_service.create(db, user.id, token, claims.issued_at, claims.expires_at)
        return token

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Tuple[str, Identity]:
        """Check credentials, open a session and return its token with the identity.

        Raises:
            AuthenticationError: unknown email, wrong password or non-Active
                status. No session is created in any of these cases.
        """
        user = db.query(User).filter(User.email == _normalize_email(email)).first()
        if user is None:
            # Unknown emails pay the same bcrypt cost as wrong passwords
            verify_password(password, _hash_for_missing_user())
            logger.info("Failed login for %s", _normalize_email(email))
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not verify_password(password, user.hashed_password):
            logger.info("Failed login for %s", _normalize_email(email))
            raise AuthenticationError(INVALID_CREDENTIALS)

        if user.status != UserStatus.Active:
            logger.info("Login refused for %s: status %s", user.email, user.status.value)
            raise AuthenticationError(INVALID_CREDENTIALS)

        token = AuthService._start_session(db, user)

        user.last_login_at = utcnow()
        db.commit()

        return token, permission_store.to_identity(user)

    @staticmethod
    def resolve_identity(db: Session, token: str) -> Identity:
        """Turn a bearer token into a freshly loaded, Active identity.

        Raises:
            InvalidTokenError: the token does not verify or its session was revoked.
            AuthenticationError: the user no longer exists or is not Active.
        """
        claims = verify_token(token)
        if settings.SESSION_CHECK_ENABLED and not session_service.exists(db, token):
            logger.info("Token for user %s has no live session", claims.id)
            raise AuthenticationError("Session revoked")

        identity = permission_store.load(db, claims.id)
        if identity is None or not identity.is_active:
            raise AuthenticationError(INACTIVE_USER)
        return identity

    @staticmethod
    def verify(db: Session, token: str) -> Dict[str, Any]:
        """Verify a token and return the current user data."""
        try:
            identity = AuthService.resolve_identity(db, token)
        except InvalidTokenError as e:
            logger.info("Token verification failed: %s", e.reason.value)
            raise
        except AuthenticationError as e:
            if e.message == INACTIVE_USER:
                raise
            raise AuthenticationError("Invalid token")
        return {"valid": True, "user": identity.to_public_dict()}

    @staticmethod
    def refresh(db: Session, token: str) -> Dict[str, Any]:
        """Re-issue a token for a still-Active user.

        Expired tokens are accepted until ``SESSION_REFRESH_GRACE_MINUTES``
        after their expiry; the sweep keeps their session records that long.
        """
        claims = verify_token_ignoring_expiry(token)
        grace_seconds = settings.SESSION_REFRESH_GRACE_MINUTES * 60
        if claims.expires_at + grace_seconds <= int(time.time()):
            raise InvalidTokenError(TokenFailure.expired)
        if settings.SESSION_CHECK_ENABLED and not session_service.exists(db, token):
            raise AuthenticationError("Session revoked")
        user = db.query(User).populate_existing().filter(User.id == claims.id).first()
        if not user or user.status != UserStatus.Active:
            raise AuthenticationError(INACTIVE_USER)

        session_service.revoke(db, token)
        return {"token": AuthService._start_session(db, user)}

    @staticmethod
    def logout(db: Session, token: str) -> bool:
        """Delete the session record of ``token``."""
        return session_service.revoke(db, token)

    # ---- User administration ----

    @staticmethod
    def check_can_assign(
        resolver: AccessResolver,
        actor: Identity,
        role: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> None:
        """Non-top actors can neither hand out a top-rank role nor another branch."""
        if resolver.is_top(actor):
            return
        if role is not None:
            role = normalize_role(role)
            if resolver.hierarchy.is_top(role):
                raise AuthorizationError(f"Only top-rank users can assign '{role}'")
        if branch is not None and branch != actor.branch:
            raise AuthorizationError("Cannot assign users to other branches")

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: str,
        full_name: str,
        role: str = "Staff",
        branch: Optional[str] = None,
        permissions: Optional[List[str]] = None,
    ) -> User:
        """Create a new Active user."""
        email = _normalize_email(email)
        role = normalize_role(role)

        existing = db.query(User).filter(User.email == email).first()
        if existing:
            raise ResourceConflictError(f"User with email {email} already exists")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            role=role,
            branch=branch,
            status=UserStatus.Active,
            permissions_json=json.dumps(sorted(set(permissions or []))),
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ResourceConflictError(f"User with email {email} already exists")
        db.refresh(user)
        return user

    @staticmethod
    def update_user(
        db: Session,
        user: User,
        full_name: Optional[str] = None,
        role: Optional[str] = None,
        branch: Optional[str] = None,
        status: Optional[UserStatus] = None,
    ) -> User:
        """Apply profile, role, branch and status changes.

        Leaving Active revokes every session of the user.
        """
        if role is not None:
            role = normalize_role(role)
        if full_name:
            user.full_name = full_name
        if role is not None:
            user.role = role
        if branch is not None:
            user.branch = branch or None

        if status is not None and status != user.status:
            was_active = user.status == UserStatus.Active
            user.status = status
            if was_active:
                revoked = session_service.revoke_all_for_user(db, user.id, commit=False)
                logger.info("User %s is now %s; revoked %d sessions", user.id, status.value, revoked)

        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_module_permissions(
        db: Session,
        user: User,
        grants: Iterable[Dict[str, Any]],
        modules: Optional[List[str]] = None,
    ) -> User:
        """Replace the user's module permission rows.

        ``grants`` items carry ``module``, ``access_level`` and optional
        ``can_add``/``can_edit``/``can_delete``. ``modules``, when given,
        replaces the legacy module list.
        """
        rows = []
        seen = set()
        for grant in grants:
            module = grant["module"]
            if module in seen:
                raise ValidationError(f"Duplicate permission for module '{module}'")
            seen.add(module)
            rows.append(ModulePermission(
                module=module,
                access_level=AccessLevel(grant.get("access_level", AccessLevel.view)),
                can_add=grant.get("can_add"),
                can_edit=grant.get("can_edit"),
                can_delete=grant.get("can_delete"),
            ))

        # Flush the deletes first; (user_id, module) is unique.
        user.module_permissions.clear()
        db.flush()
        user.module_permissions.extend(rows)
        if modules is not None:
            user.permissions_json = json.dumps(sorted(set(modules)))
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_user(db: Session, user_id: int, scope=None) -> User:
        """Get a user by id, optionally within a branch scope."""
        query = db.query(User).filter(User.id == user_id)
        if scope is not None:
            query = apply_branch_scope(query, scope, User.branch)
        user = query.first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def list_users(db: Session, scope, status: Optional[str] = None, page: int = 1, page_size: int = 20):
        """List users visible in ``scope`` with pagination."""
        query = apply_branch_scope(db.query(User), scope, User.branch)
        if status:
            query = query.filter(User.status == UserStatus(status))
        total = query.count()
        users = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page}


auth_service = AuthService()
