"""Custom exception classes for the LMS platform."""

from typing import Optional

from fastapi import status


class LMSPlatformError(Exception):
    """Base exception for LMS Platform.

    ``error`` is the short title rendered in the response body, ``message``
    the human-readable explanation.
    """

    status_code: int = status.HTTP_400_BAD_REQUEST
    error: str = "Bad request"

    def __init__(self, message: str = "An error occurred", error: Optional[str] = None):
        self.message = message
        if error is not None:
            self.error = error
        super().__init__(self.message)


class ConfigurationError(LMSPlatformError):
    """Raised at startup when required configuration is missing."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Configuration error"


class AuthenticationError(LMSPlatformError):
    """Raised when authentication fails."""
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "Unauthorized"


class InvalidCredentialsError(AuthenticationError):
    """Raised on a bad email/password pair. Never says which one was wrong."""
    error = "Invalid credentials"

    def __init__(self, message: str = "Email or password is incorrect"):
        super().__init__(message)


class AccountInactiveError(LMSPlatformError):
    """Raised when the account exists but has been deactivated."""
    status_code = status.HTTP_403_FORBIDDEN
    error = "Account inactive"

    def __init__(self, message: str = "Your account has been suspended or deactivated"):
        super().__init__(message)


class AuthorizationError(LMSPlatformError):
    """Raised when user lacks permission."""
    status_code = status.HTTP_403_FORBIDDEN
    error = "Forbidden"


class ResourceNotFoundError(LMSPlatformError):
    """Raised when a requested resource is not found."""
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class ResourceConflictError(LMSPlatformError):
    """Raised when a resource already exists."""
    status_code = status.HTTP_409_CONFLICT
    error = "Conflict"


class ValidationError(LMSPlatformError):
    """Raised when input validation fails."""
    error = "Invalid input"


class HierarchyError(LMSPlatformError):
    """Raised when an ownership-graph write or cascade fails."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Hierarchy error"
