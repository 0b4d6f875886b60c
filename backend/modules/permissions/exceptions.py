"""
Permission module exceptions.

These exceptions are raised by the permission module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from typing import Optional

from shared.exceptions import AuthorizationError


class PermissionDeniedError(AuthorizationError):
    """Raised when the caller's role does not grant a permission."""

    def __init__(
        self,
        permission: str,
        role: str,
        reason: Optional[str] = None,
    ):
        super().__init__(
            reason or "Permission denied",
            code="PERMISSION_DENIED",
            details={"permission": permission, "role": role},
        )
