"""
Claims module interfaces.

The claims store is external: a cached, signed copy of the role held by
the identity provider. Reads and writes are not transactional with the
relational store.
"""

from typing import Protocol, Optional, runtime_checkable

from shared.models import AppRole

from .models import ClaimsSyncResult


@runtime_checkable
class IClaimsStore(Protocol):
    """Access to the identity provider's role claim."""

    async def read_role(self, auth_user_id: str) -> Optional[AppRole]:
        """
        Read the cached role claim.

        Returns:
            The claim parsed into AppRole, or None when no claim is set

        Raises:
            ClaimsStoreError: If the store cannot be reached
        """
        ...

    async def write_role(self, auth_user_id: str, role: AppRole) -> None:
        """
        Overwrite the cached role claim.

        Raises:
            ClaimsStoreError: If the store cannot be reached
        """
        ...

    async def force_refresh(self, auth_user_id: str) -> None:
        """
        Force the identity's token to be re-issued with current claims.

        Raises:
            ClaimsStoreError: If the store cannot be reached
        """
        ...


@runtime_checkable
class IClaimsSynchronizer(Protocol):
    """Keeps the cached role claim converged with the profile role."""

    async def publish_role(self, auth_user_id: str, role: AppRole) -> ClaimsSyncResult:
        """
        Push a freshly committed role into the claims store and refresh.

        Never raises for claims store failures; they come back as a warning.
        """
        ...

    async def force_refresh(self, auth_user_id: str) -> ClaimsSyncResult:
        """Refresh the identity's token (non-fatal on failure)."""
        ...

    async def reconcile(self, auth_user_id: str) -> ClaimsSyncResult:
        """
        Compare the claim with the profile role and repair any drift.

        Read-then-conditionally-write, so safe to retry.

        Raises:
            ProfileNotFoundError: If the identity has no profile
        """
        ...
