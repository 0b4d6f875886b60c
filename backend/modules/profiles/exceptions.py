"""
Profile module exceptions.
"""

from shared.exceptions import NotFoundError


class ProfileNotFoundError(NotFoundError):
    """Raised when no profile exists for an id or identity."""

    def __init__(self, profile_id: str):
        super().__init__(
            "Profile not found",
            code="PROFILE_NOT_FOUND",
            details={"profile_id": profile_id},
        )
