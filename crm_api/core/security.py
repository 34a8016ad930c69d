"""JWT issuing/verification and password hashing helpers."""

import hashlib
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from crm_api.core.config import settings
from crm_api.core.exceptions import InvalidTokenError, TokenFailure

logger = logging.getLogger("crm_api.security")

TOKEN_TYPE = "access"


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified token payload keyed by the canonical user id."""

    id: int
    email: str
    role: str
    branch: Optional[str]
    issued_at: int
    expires_at: int

    def as_identity_claims(self) -> Dict[str, Any]:
        return {"id": self.id, "email": self.email, "role": self.role, "branch": self.branch}


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a password against its hash."""
    if not hashed_password:
        return False
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    try:
        return bcrypt.checkpw(pwd_bytes, hashed_bytes)
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


def hash_token(token: str) -> str:
    """One-way hash under which session records are stored."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def issue_token(claims: Dict[str, Any], ttl: Optional[timedelta] = None) -> str:
    """Create a signed token for ``{id, email, role, branch}``.

    The token expires ``ttl`` after issuance (``JWT_EXPIRY_MINUTES`` by default).
    """
    ttl = ttl if ttl is not None else timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    issued_at = int(time.time())
    to_encode = {
        "sub": str(claims["id"]),
        "email": claims["email"],
        "role": claims["role"],
        "branch": claims.get("branch"),
        "iat": issued_at,
        "exp": issued_at + int(ttl.total_seconds()),
        "type": TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str) -> TokenClaims:
    """Verify signature and expiry and return the decoded claims.

    Raises:
        InvalidTokenError: tagged malformed, signature_invalid or expired.
    """
    return _decode(token, verify_exp=True)


def verify_token_ignoring_expiry(token: str) -> TokenClaims:
    """Verify the signature only; used for silent renewal."""
    return _decode(token, verify_exp=False)


def _decode(token: str, verify_exp: bool) -> TokenClaims:
    try:
        jwt.get_unverified_claims(token)
    except (JWTError, AttributeError):
        raise InvalidTokenError(TokenFailure.malformed)

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except ExpiredSignatureError:
        raise InvalidTokenError(TokenFailure.expired)
    except JWTError:
        raise InvalidTokenError(TokenFailure.signature_invalid)

    if payload.get("type") != TOKEN_TYPE:
        raise InvalidTokenError(TokenFailure.malformed)

    try:
        claims = TokenClaims(
            id=int(payload["sub"]),
            email=payload["email"],
            role=payload["role"],
            branch=payload.get("branch"),
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError(TokenFailure.malformed)

    # Expired from the second it reaches exp, not one second later.
    if verify_exp and claims.expires_at <= int(time.time()):
        raise InvalidTokenError(TokenFailure.expired)
    return claims
