"""
Dependency injection setup for FastAPI.

This module provides the "container" that wires together all module
implementations. Each module exposes its service through an interface,
and this file creates the concrete implementations.

Tests swap implementations either through app.dependency_overrides or by
handing a pre-built container to set_container().
"""

from datetime import timedelta
from typing import TYPE_CHECKING, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shared.config import Settings, get_settings
from shared.database import create_engine, create_sessionmaker

# Type checking imports for interfaces (avoids circular imports)
if TYPE_CHECKING:
    from modules.auth.interfaces import IAuthService
    from modules.claims.interfaces import IClaimsStore, IClaimsSynchronizer
    from modules.memberships.interfaces import IMembershipService
    from modules.memberships.lifecycle import MembershipLifecycle
    from modules.profiles.interfaces import IProfileService
    from modules.store.interfaces import IStoreService


class ServiceContainer:
    """
    Container for all service instances.

    This class manages the lifecycle of service instances and their
    dependencies. Services are created lazily on first access.

    All services are cached as singletons within the container.
    Use reset() to clear all cached services for testing.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        engine: Optional[AsyncEngine] = None,
        claims_store: "IClaimsStore | None" = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._engine: Optional[AsyncEngine] = engine
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._claims_store: "IClaimsStore | None" = claims_store
        self._auth_service: "IAuthService | None" = None
        self._profile_service: "IProfileService | None" = None
        self._claims_service: "IClaimsSynchronizer | None" = None
        self._lifecycle: "MembershipLifecycle | None" = None
        self._membership_service: "IMembershipService | None" = None
        self._store_service: "IStoreService | None" = None

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def engine(self) -> AsyncEngine:
        """Get the database engine."""
        if self._engine is None:
            self._engine = create_engine(self._settings)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            self._session_factory = create_sessionmaker(self.engine)
        return self._session_factory

    @property
    def auth(self) -> "IAuthService":
        """Get the auth service instance."""
        if self._auth_service is None:
            from modules.auth.service import AuthService
            self._auth_service = AuthService(self._settings)
        return self._auth_service

    @property
    def profiles(self) -> "IProfileService":
        """Get the profile service instance."""
        if self._profile_service is None:
            from modules.profiles.service import ProfileService
            self._profile_service = ProfileService(self.session_factory)
        return self._profile_service

    @property
    def claims_store(self) -> "IClaimsStore":
        """Get the claims store (Supabase auth admin API)."""
        if self._claims_store is None:
            from modules.claims.store import SupabaseClaimsStore
            from shared.database import get_supabase_client
            self._claims_store = SupabaseClaimsStore(get_supabase_client())
        return self._claims_store

    @property
    def claims(self) -> "IClaimsSynchronizer":
        """Get the claims synchronizer instance."""
        if self._claims_service is None:
            from modules.claims.service import ClaimsSynchronizer
            self._claims_service = ClaimsSynchronizer(
                store=self.claims_store,
                session_factory=self.session_factory,
                reconcile_attempts=self._settings.claims_reconcile_attempts,
                reconcile_backoff_seconds=self._settings.claims_reconcile_backoff_seconds,
            )
        return self._claims_service

    @property
    def lifecycle(self) -> "MembershipLifecycle":
        if self._lifecycle is None:
            from modules.memberships.lifecycle import MembershipLifecycle
            self._lifecycle = MembershipLifecycle(
                term=timedelta(days=self._settings.membership_term_days)
            )
        return self._lifecycle

    @property
    def memberships(self) -> "IMembershipService":
        """Get the membership service instance."""
        if self._membership_service is None:
            from modules.memberships.service import MembershipService
            self._membership_service = MembershipService(
                session_factory=self.session_factory,
                lifecycle=self.lifecycle,
                claims=self.claims,
                sweep_batch_size=self._settings.sweep_batch_size,
            )
        return self._membership_service

    @property
    def store(self) -> "IStoreService":
        """Get the store service instance."""
        if self._store_service is None:
            from modules.store.service import StoreService
            self._store_service = StoreService(
                session_factory=self.session_factory,
                lifecycle=self.lifecycle,
                claims=self.claims,
                archive_batch_size=self._settings.archive_batch_size,
            )
        return self._store_service

    def reset(self) -> None:
        """
        Reset all cached services.

        This is primarily for testing - allows tests to get fresh
        service instances with different mock dependencies. The engine is
        kept; dispose() releases it.
        """
        self._auth_service = None
        self._profile_service = None
        self._claims_service = None
        self._lifecycle = None
        self._membership_service = None
        self._store_service = None

    async def dispose(self) -> None:
        """Release pooled database connections."""
        if self._engine is not None:
            await self._engine.dispose()


# Module-level container singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Get the singleton service container."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: ServiceContainer) -> None:
    """Install a pre-built container (tests and scripts)."""
    global _container
    _container = container


def reset_container() -> None:
    """
    Reset the service container.

    This clears the cached container, so the next call to get_container()
    will create a fresh container with new service instances.

    Primarily used for testing.
    """
    global _container
    _container = None


# FastAPI dependency functions
# These are the functions that should be used in route Depends() calls


def get_auth_service() -> "IAuthService":
    """FastAPI dependency for auth service."""
    return get_container().auth


def get_profile_service() -> "IProfileService":
    """FastAPI dependency for profile service."""
    return get_container().profiles


def get_claims_service() -> "IClaimsSynchronizer":
    """FastAPI dependency for claims synchronizer."""
    return get_container().claims


def get_membership_service() -> "IMembershipService":
    """FastAPI dependency for membership service."""
    return get_container().memberships


def get_store_service() -> "IStoreService":
    """FastAPI dependency for store service."""
    return get_container().store


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency for the session factory (readiness checks)."""
    return get_container().session_factory
