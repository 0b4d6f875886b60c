"""
Claims store implementations.

Provides both in-memory (for testing) and Supabase-backed (for production)
implementations of the claims store.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from supabase import Client

from shared.models import AppRole, utc_now

from .exceptions import ClaimsStoreError
from .interfaces import IClaimsStore

logger = logging.getLogger(__name__)

ROLE_CLAIM = "app_role"
REFRESHED_AT_CLAIM = "claims_refreshed_at"


class SupabaseClaimsStore(IClaimsStore):
    """
    Claims store on top of the Supabase auth admin API.

    The role claim lives in the user's ``app_metadata.app_role``, which the
    access token hook copies into every issued token. A refresh stamps
    ``app_metadata.claims_refreshed_at`` so sessions holding an older token
    re-issue on their next refresh.
    """

    def __init__(self, client: Client, clock: Callable[[], datetime] = utc_now):
        self._db = client
        self._clock = clock

    async def read_role(self, auth_user_id: str) -> Optional[AppRole]:
        metadata = self._get_app_metadata(auth_user_id)
        value = metadata.get(ROLE_CLAIM)
        if value is None:
            return None
        return AppRole.from_claim(value)

    async def write_role(self, auth_user_id: str, role: AppRole) -> None:
        self._update_app_metadata(auth_user_id, {ROLE_CLAIM: role.value})

    async def force_refresh(self, auth_user_id: str) -> None:
        self._update_app_metadata(
            auth_user_id,
            {REFRESHED_AT_CLAIM: self._clock().isoformat()},
        )

    def _get_app_metadata(self, auth_user_id: str) -> dict[str, Any]:
        try:
            response = self._db.auth.admin.get_user_by_id(auth_user_id)
        except Exception as e:
            raise ClaimsStoreError(f"Failed to read claims: {e}", auth_user_id) from e

        user = getattr(response, "user", None)
        if user is None:
            raise ClaimsStoreError("Identity not found in claims store", auth_user_id)
        return dict(user.app_metadata or {})

    def _update_app_metadata(self, auth_user_id: str, values: dict[str, Any]) -> None:
        # app_metadata is merged key by key by the auth server
        try:
            self._db.auth.admin.update_user_by_id(auth_user_id, {"app_metadata": values})
        except Exception as e:
            raise ClaimsStoreError(f"Failed to update claims: {e}", auth_user_id) from e


class InMemoryClaimsStore(IClaimsStore):
    """
    Claims store with in-memory storage.

    For testing and development. Use SupabaseClaimsStore for production.
    """

    def __init__(self):
        self._roles: dict[str, AppRole] = {}
        self.refresh_counts: dict[str, int] = {}

    async def read_role(self, auth_user_id: str) -> Optional[AppRole]:
        return self._roles.get(auth_user_id)

    async def write_role(self, auth_user_id: str, role: AppRole) -> None:
        self._roles[auth_user_id] = role

    async def force_refresh(self, auth_user_id: str) -> None:
        self.refresh_counts[auth_user_id] = self.refresh_counts.get(auth_user_id, 0) + 1
