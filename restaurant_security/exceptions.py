"""
Custom Exception Classes for the account-security service

Every error carries the HTTP status it maps to and a machine-readable code,
so handlers can render a consistent flat envelope without inspecting types.
"""

from typing import Any

from fastapi import status


class SecurityServiceError(Exception):
    """Base exception class for all account-security errors"""

    code = "internal_error"

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# ============================================================================
# Authentication & Authorization Exceptions
# ============================================================================


class UnauthenticatedError(SecurityServiceError):
    """Raised when the bearer identity is missing or invalid"""

    code = "unauthenticated"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class InvalidCredentialsError(SecurityServiceError):
    """Raised when password re-authentication fails"""

    code = "invalid_credentials"

    def __init__(self, message: str = "Incorrect password"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


class AuthorizationError(SecurityServiceError):
    """Raised when the caller may not act on the requested resource"""

    code = "forbidden"

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


# ============================================================================
# Two-Factor Exceptions
# ============================================================================


class AlreadyEnabledError(SecurityServiceError):
    """Raised when setup is requested while 2FA is enabled"""

    code = "already_enabled"

    def __init__(self, message: str = "2FA is already enabled. Disable it first to reconfigure."):
        super().__init__(message=message, status_code=status.HTTP_409_CONFLICT)


class NotConfiguredError(SecurityServiceError):
    """Raised when no 2FA settings exist for the user"""

    code = "not_configured"

    def __init__(self, message: str = "2FA has not been set up"):
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND)


class InvalidTokenError(SecurityServiceError):
    """Raised when a verification code is malformed or incorrect"""

    code = "invalid_token"

    def __init__(self, message: str = "Invalid verification code", status_code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(message=message, status_code=status_code)


class LockedError(SecurityServiceError):
    """Raised while the verification lockout window is active"""

    code = "locked"

    def __init__(self, locked_until=None):
        details = {"locked_until": locked_until.isoformat()} if locked_until else {}
        super().__init__(
            message="Too many failed attempts. Verification is temporarily locked.",
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            details=details,
        )


# ============================================================================
# Validation & Store Exceptions
# ============================================================================


class ValidationError(SecurityServiceError):
    """Raised when input validation fails before any store access"""

    code = "validation_error"

    def __init__(self, message: str, field: str | None = None, details: dict[str, Any] | None = None):
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=error_details)


class ResourceNotFoundError(SecurityServiceError):
    """Raised when a referenced resource does not exist"""

    code = "not_found"

    def __init__(self, resource_type: str, resource_id: Any | None = None):
        message = f"{resource_type} not found"
        if resource_id is not None:
            message = f"{resource_type} with id '{resource_id}' not found"
        super().__init__(message=message, status_code=status.HTTP_404_NOT_FOUND)


class StoreFailureError(SecurityServiceError):
    """Raised when a backing-store read or write fails or times out"""

    code = "store_failure"

    def __init__(self, message: str = "A storage error occurred", operation: str | None = None):
        details = {"operation": operation} if operation else {}
        super().__init__(message=message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)


class PartialBatchFailureError(SecurityServiceError):
    """Raised when some backup steps of a batch failed while others succeeded"""

    code = "partial_batch_failure"

    def __init__(self, results: list[dict[str, Any]], message: str = "Some backups failed"):
        super().__init__(message=message, status_code=status.HTTP_207_MULTI_STATUS, details={"results": results})
