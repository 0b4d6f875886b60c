"""
Membership module exceptions.

These exceptions are raised by the membership module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from datetime import datetime
from typing import Optional

from shared.exceptions import ConflictError, NotFoundError


class MembershipNotFoundError(NotFoundError):
    """Raised when a profile has never held a membership."""

    def __init__(self, profile_id: str):
        super().__init__(
            "Membership not found",
            code="MEMBERSHIP_NOT_FOUND",
            details={"profile_id": profile_id},
        )


class MembershipAlreadyActiveError(ConflictError):
    """
    Raised when granting a membership to a profile that already has one.

    At most one active membership purchase is allowed per profile.
    """

    def __init__(self, profile_id: str, end_date: Optional[datetime] = None):
        details = {"profile_id": profile_id}
        if end_date is not None:
            details["end_date"] = end_date.isoformat()
        super().__init__(
            "Membership already active",
            code="MEMBERSHIP_ALREADY_ACTIVE",
            details=details,
        )


class MembershipNotActiveError(ConflictError):
    """Raised when cancelling a membership that is not active."""

    def __init__(self, profile_id: str):
        super().__init__(
            "Membership is not active",
            code="MEMBERSHIP_NOT_ACTIVE",
            details={"profile_id": profile_id},
        )
