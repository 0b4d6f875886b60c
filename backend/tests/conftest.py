"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules:
a JWT factory, an in-memory SQLite database, a controllable clock, an
in-memory claims store, and factories for seeding profiles and products.
"""

import pytest
import pytest_asyncio
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Any, Optional
import jwt  # PyJWT

from api.dependencies import reset_container
from shared.config import Settings, get_settings
from shared.database import create_engine, create_sessionmaker, init_db
from shared.models import AppRole, ProductType
from modules.auth.service import reset_auth_service
from modules.claims.service import ClaimsSynchronizer
from modules.claims.store import InMemoryClaimsStore
from modules.memberships.lifecycle import MembershipLifecycle
from modules.memberships.repository import MembershipRepository
from modules.memberships.service import MembershipService
from modules.profiles.models import Profile
from modules.profiles.repository import ProfileRepository
from modules.profiles.service import ProfileService
from modules.store.models import Product
from modules.store.repository import ProductRepository
from modules.store.service import StoreService


# Test JWT secret (only for testing)
TEST_JWT_SECRET = "test-secret-key-for-testing-only"

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

MEMBERSHIP_TERM = timedelta(days=365)


def create_test_token(
    user_id: str = "test-user-123",
    email: str = "test@example.com",
    expired: bool = False,
    email_verified: bool = True,
    app_role: Optional[Any] = None,
    app_metadata: Optional[dict] = None,
) -> str:
    """
    Create a test JWT token for authentication.

    Args:
        user_id: User ID to include in the token
        email: Email to include in the token
        expired: If True, creates an expired token
        email_verified: Whether the email should be marked as verified
        app_role: Top-level role claim (omitted when None)
        app_metadata: Supabase app_metadata claim

    Returns:
        JWT token string
    """
    now = datetime.now(timezone.utc)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload = {
        "sub": user_id,
        "email": email,
        "email_confirmed_at": now.isoformat() if email_verified else None,
        "aud": "authenticated",
        "role": "authenticated",
        "exp": int(exp.timestamp()),
        "iat": int(now.timestamp()),
        "app_metadata": app_metadata or {},
    }
    if app_role is not None:
        payload["app_role"] = app_role
    return jwt.encode(payload, TEST_JWT_SECRET, algorithm="HS256")


class FrozenClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached settings, services and the container around each test."""
    reset_auth_service()
    reset_container()
    get_settings.cache_clear()
    yield
    reset_auth_service()
    reset_container()
    get_settings.cache_clear()


@pytest.fixture
def test_user_id() -> str:
    """Provide a consistent test user ID."""
    return "test-user-123"


@pytest.fixture
def test_user_email() -> str:
    """Provide a consistent test user email."""
    return "test@example.com"


@pytest.fixture
def auth_token(test_user_id: str, test_user_email: str) -> str:
    """Create a valid auth token for testing."""
    return create_test_token(user_id=test_user_id, email=test_user_email)


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    """Create authorization headers with a valid token."""
    return {"Authorization": f"Bearer {auth_token}"}


# -----------------------------------------------------------------------------
# Database and services
# -----------------------------------------------------------------------------


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite database with the full schema."""
    engine = create_engine(Settings(database_url=TEST_DATABASE_URL))
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_sessionmaker(engine)


@pytest.fixture
def claims_store() -> InMemoryClaimsStore:
    return InMemoryClaimsStore()


@pytest.fixture
def claims(claims_store, session_factory) -> ClaimsSynchronizer:
    return ClaimsSynchronizer(
        store=claims_store,
        session_factory=session_factory,
        reconcile_attempts=3,
        reconcile_backoff_seconds=0,
    )


@pytest.fixture
def lifecycle() -> MembershipLifecycle:
    return MembershipLifecycle(term=MEMBERSHIP_TERM)


@pytest.fixture
def profile_service(session_factory, clock) -> ProfileService:
    return ProfileService(session_factory, clock=clock)


@pytest.fixture
def membership_service(session_factory, lifecycle, claims, clock) -> MembershipService:
    return MembershipService(
        session_factory=session_factory,
        lifecycle=lifecycle,
        claims=claims,
        clock=clock,
        sweep_batch_size=2,
    )


@pytest.fixture
def store_service(session_factory, lifecycle, claims, clock) -> StoreService:
    return StoreService(
        session_factory=session_factory,
        lifecycle=lifecycle,
        claims=claims,
        clock=clock,
        archive_batch_size=200,
    )


@pytest.fixture
def make_profile(session_factory, clock):
    """Factory that inserts a profile with the given role."""
    counter = {"n": 0}

    async def _make(role: AppRole = AppRole.USER, auth_user_id: Optional[str] = None) -> Profile:
        counter["n"] += 1
        async with session_factory() as session, session.begin():
            return await ProfileRepository(session).create(
                auth_user_id or f"auth-user-{counter['n']}",
                now=clock(),
                app_role=role,
            )

    return _make


@pytest.fixture
def make_product(session_factory, clock):
    """Factory that inserts a product directly, bypassing permission checks."""

    async def _make(
        created_by: Profile,
        product_type: ProductType = ProductType.ORANGE,
        name: Optional[str] = None,
        price: Decimal = Decimal("9.99"),
    ) -> Product:
        async with session_factory() as session, session.begin():
            return await ProductRepository(session).create(
                name=name or f"{product_type.value.title()} product",
                product_type=product_type,
                price=price,
                created_by=created_by.id,
                now=clock(),
            )

    return _make


@pytest_asyncio.fixture
async def admin(make_profile) -> Profile:
    return await make_profile(AppRole.ADMIN, auth_user_id="auth-admin")


@pytest_asyncio.fixture
async def staff(make_profile) -> Profile:
    return await make_profile(AppRole.STAFF, auth_user_id="auth-staff")


@pytest_asyncio.fixture
async def user(make_profile) -> Profile:
    return await make_profile(AppRole.USER, auth_user_id="auth-user")


@pytest_asyncio.fixture
async def membership_product(make_product, admin) -> Product:
    return await make_product(admin, ProductType.MEMBERSHIP, name="Annual membership", price=Decimal("99.00"))


async def profile_state(session_factory, profile_id: str) -> dict[str, Any]:
    """
    Read back what the invariants talk about for one profile.

    Returns the role, the membership row (or None) and the IDs of active
    purchases of non-archived MEMBERSHIP products.
    """
    async with session_factory() as session:
        profile = await ProfileRepository(session).get_by_id(profile_id)
        memberships = MembershipRepository(session)
        membership = await memberships.get_for_profile(profile_id)
        active = await memberships.count_active_membership_purchases(profile_id)
    return {"role": profile.app_role, "membership": membership, "active_membership_purchases": active}


def assert_membership_invariant(state: dict[str, Any], now: datetime) -> None:
    """MEMBER iff active membership iff active membership purchase (USER/MEMBER profiles)."""
    is_member = state["role"] == AppRole.MEMBER
    has_active_term = state["membership"] is not None and state["membership"].is_active(now)
    has_backing = state["active_membership_purchases"] > 0
    assert is_member == has_active_term == has_backing, state
