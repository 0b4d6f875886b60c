"""
Claims synchronizer.

Converges the cached role claim with the authoritative profile role after
role-changing events. Callers must commit their database transaction before
publishing, so a successful refresh never advertises a role the database
cannot back.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from shared.models import AppRole
from modules.profiles.exceptions import ProfileNotFoundError
from modules.profiles.repository import ProfileRepository

from .exceptions import ClaimsStoreError
from .interfaces import IClaimsStore, IClaimsSynchronizer
from .models import ClaimsSyncResult

logger = logging.getLogger(__name__)


class ClaimsSynchronizer(IClaimsSynchronizer):
    """
    Claims synchronizer over a claims store and the profile table.

    Only ``reconcile`` is retried automatically. It re-reads both sides on
    every attempt, so a retry never re-asserts a role that has since
    changed.
    """

    def __init__(
        self,
        store: IClaimsStore,
        session_factory: async_sessionmaker[AsyncSession],
        reconcile_attempts: int = 3,
        reconcile_backoff_seconds: float = 0.5,
    ):
        self._store = store
        self._session_factory = session_factory
        self._reconcile_attempts = max(1, reconcile_attempts)
        self._reconcile_backoff = reconcile_backoff_seconds

    async def publish_role(self, auth_user_id: str, role: AppRole) -> ClaimsSyncResult:
        """Write the committed role into the claim and refresh the token."""
        try:
            await self._store.write_role(auth_user_id, role)
            await self._store.force_refresh(auth_user_id)
        except ClaimsStoreError as e:
            logger.warning("Claims publish failed for %s: %s", auth_user_id, e.message)
            return ClaimsSyncResult(
                auth_user_id=auth_user_id,
                role=role,
                synced=False,
                warning="Your access was updated but your session could not be refreshed. "
                "Refresh your session to see the change.",
            )
        return ClaimsSyncResult(auth_user_id=auth_user_id, role=role, changed=True)

    async def force_refresh(self, auth_user_id: str) -> ClaimsSyncResult:
        try:
            await self._store.force_refresh(auth_user_id)
        except ClaimsStoreError as e:
            logger.warning("Claims refresh failed for %s: %s", auth_user_id, e.message)
            return ClaimsSyncResult(
                auth_user_id=auth_user_id,
                synced=False,
                warning="Session refresh failed. Please retry.",
            )
        return ClaimsSyncResult(auth_user_id=auth_user_id)

    async def reconcile(self, auth_user_id: str) -> ClaimsSyncResult:
        """Repair drift between the claim and the profile role (best-effort)."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._reconcile_attempts),
            wait=wait_exponential(multiplier=self._reconcile_backoff, max=5),
            retry=retry_if_exception_type(ClaimsStoreError),
            reraise=False,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._reconcile_once(auth_user_id)
        except RetryError as e:
            last: Optional[BaseException] = e.last_attempt.exception()
            logger.warning(
                "Claims reconcile for %s gave up after %d attempts: %s",
                auth_user_id,
                self._reconcile_attempts,
                last,
            )
            return ClaimsSyncResult(
                auth_user_id=auth_user_id,
                synced=False,
                warning="Could not refresh your session right now. Please retry shortly.",
            )
        raise RuntimeError("reconcile finished without a result")

    async def _reconcile_once(self, auth_user_id: str) -> ClaimsSyncResult:
        async with self._session_factory() as session:
            profile = await ProfileRepository(session).get_by_auth_user_id(auth_user_id)
        if profile is None:
            raise ProfileNotFoundError(auth_user_id)

        claim_role = await self._store.read_role(auth_user_id)
        if claim_role == profile.app_role:
            return ClaimsSyncResult(
                auth_user_id=auth_user_id,
                role=profile.app_role,
                claim_role=claim_role,
            )

        logger.info(
            "Claim drift for %s: claim=%s profile=%s",
            auth_user_id,
            claim_role.value if claim_role else None,
            profile.app_role.value,
        )
        await self._store.write_role(auth_user_id, profile.app_role)
        await self._store.force_refresh(auth_user_id)
        return ClaimsSyncResult(
            auth_user_id=auth_user_id,
            role=profile.app_role,
            claim_role=claim_role,
            changed=True,
        )
