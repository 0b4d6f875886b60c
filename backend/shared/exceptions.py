"""
Base exception classes for the Orchard Store backend.

Each module should define its own exceptions that inherit from these bases.
This enables consistent error handling across the application: the API
layer maps each base class to one HTTP status.
"""

from typing import Optional, Any


class OrchardError(Exception):
    """
    Base exception for all Orchard Store errors.

    All custom exceptions should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(OrchardError):
    """Resource not found (absent or archived)."""

    pass


class ValidationError(OrchardError):
    """Input validation failed."""

    pass


class ConflictError(OrchardError):
    """Operation would violate a state invariant."""

    pass


class AuthenticationError(OrchardError):
    """Authentication failed (invalid or missing credentials)."""

    pass


class AuthorizationError(OrchardError):
    """Authorization failed (insufficient permissions)."""

    pass


class ExternalServiceError(OrchardError):
    """Error communicating with an external service."""

    def __init__(
        self,
        message: str,
        service: str,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, code, details)
        self.service = service
        self.details["service"] = service
