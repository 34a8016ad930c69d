"""Custom exception classes for the CRM API.

Every subclass of ``CRMError`` maps to one HTTP status and is rendered as
``{"error": message}`` by the handlers registered in ``crm_api.main``.
"""

import enum
from typing import Optional

from fastapi import status


class CRMError(Exception):
    """Base exception for the CRM API."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "An error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(CRMError):
    """Raised when there is no valid credential (401)."""
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class TokenFailure(str, enum.Enum):
    malformed = "malformed"
    expired = "expired"
    signature_invalid = "signature_invalid"


class InvalidTokenError(AuthenticationError):
    """Raised when a bearer token cannot be trusted."""

    def __init__(self, reason: TokenFailure):
        self.reason = reason
        message = "Token expired" if reason == TokenFailure.expired else "Invalid token"
        super().__init__(message)


class AuthorizationError(CRMError):
    """Raised when a valid identity lacks role, module or branch permission (403)."""
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class ResourceNotFoundError(CRMError):
    """Raised when a requested resource is not found (404)."""
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class ResourceConflictError(CRMError):
    """Raised when a resource already exists (409)."""
    status_code = status.HTTP_409_CONFLICT
    default_message = "Resource already exists"


class ValidationError(CRMError):
    """Raised when input validation fails."""
    pass


class InternalFailure(CRMError):
    """Raised when the store is unreachable or something unexpected fails (500)."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"
