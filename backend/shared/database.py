"""
Database and Supabase client factories.

Provides:
- the SQLAlchemy async engine and session factory for the relational store
  (profiles, memberships, products, purchases);
- the service-role Supabase client used to read and write auth claims.
"""

from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool
from supabase import create_client, Client

from .config import Settings, get_settings
from .tables import Base

# Module-level client cache
_service_client: Optional[Client] = None


def create_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create the async engine for the configured database URL.

    In-memory SQLite gets a single shared connection so every session sees
    the same database.
    """
    settings = settings or get_settings()
    url = make_url(settings.database_url)

    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_async_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Create the session factory.

    expire_on_commit=False keeps records readable after the transaction
    that loaded them has committed.
    """
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_db(engine: AsyncEngine) -> None:
    """Drop all tables (tests and local resets only)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


def get_supabase_client() -> Client:
    """
    Get Supabase client with service role (bypasses RLS).

    The service role is required for the auth admin API, which is how the
    claims store reads and rewrites a user's ``app_role`` claim.

    Returns:
        Supabase client configured with service role key
    """
    global _service_client

    if _service_client is None:
        settings = get_settings()
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError(
                "Supabase configuration missing. "
                "Set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY environment variables."
            )
        _service_client = create_client(
            settings.supabase_url,
            settings.supabase_service_role_key,
        )

    return _service_client


def reset_client_cache() -> None:
    """
    Reset the cached Supabase client.

    Useful for testing or when configuration changes.
    """
    global _service_client
    _service_client = None
