"""
Membership module data models.

These models define the data structures used by the membership module
and exposed to other modules through the interface.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from shared.models import AppRole


class MembershipState(str, Enum):
    """Membership lifecycle states of a profile."""

    NONE = "NONE"        # Never held a membership
    ACTIVE = "ACTIVE"    # end_date in the future (or not yet set)
    EXPIRED = "EXPIRED"  # end_date has passed


class Membership(BaseModel):
    """
    A profile's membership term (at most one per profile).

    Renewals and cancellations update this row; it is never deleted.
    """

    id: str = Field(..., description="Membership ID (UUID)")
    profile_id: str = Field(..., description="Owning profile ID")
    start_date: datetime = Field(..., description="Start of the current term")
    end_date: Optional[datetime] = Field(None, description="End of the current term")

    def is_active(self, now: datetime) -> bool:
        return self.end_date is None or self.end_date > now


class RoleTransition(BaseModel):
    """A role change applied to a profile inside a committed transaction."""

    profile_id: str
    auth_user_id: str
    previous_role: AppRole
    new_role: AppRole

    @property
    def changed(self) -> bool:
        return self.previous_role != self.new_role


class MembershipStatus(BaseModel):
    """Current membership view of a profile."""

    profile_id: str = Field(..., description="Profile ID")
    state: MembershipState = Field(..., description="Lifecycle state")
    role: AppRole = Field(..., description="Authoritative profile role")
    start_date: Optional[datetime] = Field(None, description="Start of the current term")
    end_date: Optional[datetime] = Field(None, description="End of the current term")


class SweepResult(BaseModel):
    """Outcome of an expiry sweep."""

    downgraded_count: int = Field(default=0, description="Profiles downgraded to USER")
    expired_count: int = Field(default=0, description="Expired memberships processed")
    closed_purchases: int = Field(default=0, description="Lapsed membership purchases closed")
    claims_warnings: list[str] = Field(
        default_factory=list,
        description="Identities whose claims could not be refreshed",
    )


class MembershipCancellation(BaseModel):
    """Outcome of cancelling a profile's membership."""

    profile_id: str
    cancelled_purchase_ids: list[str] = Field(default_factory=list)
    membership: Optional[Membership] = None
    role: AppRole
    claims_warning: Optional[str] = None
