"""
Profile module interface.

Other modules should depend on IProfileService, not the concrete implementation.
"""

from typing import Protocol, Optional, runtime_checkable

from shared.models import AuthenticatedUser

from .models import Profile


@runtime_checkable
class IProfileService(Protocol):
    """Interface for profile provisioning and lookup."""

    async def ensure_profile(self, identity: AuthenticatedUser) -> Optional[Profile]:
        """
        Return the identity's profile, creating it on first sight.

        Idempotent and fail-open: storage failures are logged and None is
        returned so authentication is never blocked. The next request
        retries.
        """
        ...

    async def get_profile(self, profile_id: str) -> Profile:
        """
        Get a profile by ID.

        Raises:
            ProfileNotFoundError: If the profile doesn't exist
        """
        ...

    async def get_profile_for_identity(self, auth_user_id: str) -> Optional[Profile]:
        """Get the profile linked to an identity provider subject, if any."""
        ...
