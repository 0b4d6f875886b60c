"""
Profile provisioning service.

Guarantees every authenticated identity has exactly one profile.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.models import AuthenticatedUser, utc_now

from .exceptions import ProfileNotFoundError
from .interfaces import IProfileService
from .models import Profile
from .repository import ProfileRepository

logger = logging.getLogger(__name__)


class ProfileService(IProfileService):
    """
    Profile provisioner backed by the relational store.

    The unique index on ``auth_user_id`` makes creation race-safe: when two
    first requests for the same identity collide, the loser re-reads the
    winner's row.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self._clock = clock

    async def ensure_profile(self, identity: AuthenticatedUser) -> Optional[Profile]:
        """Get or lazily create the profile for an identity (fail-open)."""
        if not identity.id:
            logger.error("No identity subject provided to ensure_profile")
            return None

        try:
            existing = await self.get_profile_for_identity(identity.id)
            if existing is not None:
                return existing
            return await self._create(identity.id)
        except SQLAlchemyError:
            # Don't raise, so the auth flow can continue
            logger.exception("Failed to ensure profile for identity %s", identity.id)
            return None

    async def _create(self, auth_user_id: str) -> Profile:
        try:
            async with self._session_factory() as session, session.begin():
                profile = await ProfileRepository(session).create(auth_user_id, now=self._clock())
            logger.info("Created profile %s for identity %s", profile.id, auth_user_id)
            return profile
        except IntegrityError:
            logger.info("Concurrent profile creation for identity %s, re-reading", auth_user_id)
            profile = await self.get_profile_for_identity(auth_user_id)
            if profile is None:
                raise
            return profile

    async def get_profile(self, profile_id: str) -> Profile:
        async with self._session_factory() as session:
            profile = await ProfileRepository(session).get_by_id(profile_id)
        if profile is None:
            raise ProfileNotFoundError(profile_id)
        return profile

    async def get_profile_for_identity(self, auth_user_id: str) -> Optional[Profile]:
        async with self._session_factory() as session:
            return await ProfileRepository(session).get_by_auth_user_id(auth_user_id)
