"""
Membership module interface.

Other modules should depend on IMembershipService, not the concrete
implementation. The store module drives grants and cancellations through
MembershipLifecycle inside its own transactions; this interface covers
the membership-centric operations.
"""

from typing import Protocol, runtime_checkable

from modules.profiles.models import Profile

from .models import MembershipCancellation, MembershipStatus, SweepResult


@runtime_checkable
class IMembershipService(Protocol):
    """Interface for membership operations."""

    async def get_status(self, profile_id: str) -> MembershipStatus:
        """
        Get the membership state of a profile.

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
        """
        ...

    async def cancel_membership(self, profile_id: str, caller: Profile) -> MembershipCancellation:
        """
        Revoke a profile's membership.

        Closes every active MEMBERSHIP purchase, ends the term and
        downgrades the role in one transaction, then publishes the new
        role to the claims store.

        Raises:
            PermissionDeniedError: If the caller may not cancel this membership
            ProfileNotFoundError: If the profile doesn't exist
            MembershipNotFoundError: If the profile never held a membership
            MembershipNotActiveError: If the membership has already ended
        """
        ...

    async def sweep_expire(self) -> SweepResult:
        """
        Expire every lapsed membership.

        Idempotent: a second run with no intervening change downgrades
        nobody.
        """
        ...
