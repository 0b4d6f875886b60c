"""
Fixtures for API route tests.

Routes run against the real auth dependency (tokens signed with the test
secret) while domain services are replaced through dependency_overrides.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import (
    get_claims_service,
    get_membership_service,
    get_profile_service,
    get_store_service,
)
from shared.models import AppRole
from modules.profiles.models import Profile

from tests.conftest import TEST_JWT_SECRET


def make_api_profile(role: AppRole = AppRole.USER, profile_id: str = "profile-1") -> Profile:
    return Profile(
        id=profile_id,
        auth_user_id="test-user-123",
        app_role=role,
        created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def api_env(monkeypatch):
    """Point settings at the test JWT secret."""
    monkeypatch.setenv("SUPABASE_JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("CRON_SECRET", "cron-secret")


@pytest.fixture
def profile_service():
    service = AsyncMock()
    service.ensure_profile.return_value = make_api_profile()
    return service


@pytest.fixture
def store_service():
    return AsyncMock()


@pytest.fixture
def membership_service():
    return AsyncMock()


@pytest.fixture
def claims_service():
    return AsyncMock()


@pytest.fixture
def app(api_env, profile_service, store_service, membership_service, claims_service):
    app = create_app()
    app.dependency_overrides[get_profile_service] = lambda: profile_service
    app.dependency_overrides[get_store_service] = lambda: store_service
    app.dependency_overrides[get_membership_service] = lambda: membership_service
    app.dependency_overrides[get_claims_service] = lambda: claims_service
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app) -> TestClient:
    # No context manager: the lifespan (schema creation) is not needed here
    return TestClient(app, raise_server_exceptions=False)
