"""
Profile repository for database access.

Note: This repository does NOT perform authorization checks and never
commits. Callers own the transaction.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import select

from shared.models import AppRole
from shared.repository import BaseRepository
from shared.tables import ProfileRecord

from .models import Profile


class ProfileRepository(BaseRepository[Profile]):
    """Data access for the profiles table."""

    async def get_by_id(self, profile_id: str) -> Optional[Profile]:
        record = await self._session.get(ProfileRecord, profile_id)
        return self._map_to_profile(record) if record else None

    async def get_by_auth_user_id(self, auth_user_id: str) -> Optional[Profile]:
        stmt = select(ProfileRecord).where(ProfileRecord.auth_user_id == auth_user_id)
        record = (await self._session.execute(stmt)).scalar_one_or_none()
        return self._map_to_profile(record) if record else None

    async def lock(self, profile_id: str) -> Optional[Profile]:
        """
        Load a profile with a row lock (SELECT ... FOR UPDATE).

        Every mutation touching a profile's role, membership or purchases
        takes this lock first so concurrent handlers serialize per profile.
        """
        record = await self._session.get(
            ProfileRecord, profile_id, with_for_update=True, populate_existing=True
        )
        return self._map_to_profile(record) if record else None

    async def create(
        self,
        auth_user_id: str,
        now: datetime,
        app_role: AppRole = AppRole.USER,
    ) -> Profile:
        record = ProfileRecord(
            auth_user_id=auth_user_id,
            app_role=app_role,
            created_at=now,
            updated_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return self._map_to_profile(record)

    async def set_role(self, profile_id: str, role: AppRole, now: datetime) -> None:
        record = await self._session.get(ProfileRecord, profile_id)
        if record is None:
            return
        record.app_role = role
        record.updated_at = now
        await self._session.flush()

    @staticmethod
    def _map_to_profile(record: ProfileRecord) -> Profile:
        return Profile(
            id=record.id,
            auth_user_id=record.auth_user_id,
            app_role=record.app_role,
            created_at=record.created_at,
        )
