"""
Shared infrastructure for the Orchard Store backend.

This package contains cross-cutting concerns that are used by multiple modules:
- config: Centralized settings management
- database: SQLAlchemy engine/session factories and the Supabase client
- tables: ORM records for the relational store
- exceptions: Base exception classes
- models: Shared enums and the authenticated identity

Note: Business logic should NOT go here. This is for infrastructure only.
"""

from .config import Settings, get_settings
from .database import (
    create_engine,
    create_sessionmaker,
    init_db,
    get_supabase_client,
    reset_client_cache,
)
from .exceptions import (
    OrchardError,
    NotFoundError,
    ValidationError,
    ConflictError,
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
)
from .models import AppRole, ProductType, AuthenticatedUser, utc_now

__all__ = [
    "Settings",
    "get_settings",
    "create_engine",
    "create_sessionmaker",
    "init_db",
    "get_supabase_client",
    "reset_client_cache",
    "OrchardError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "AuthenticationError",
    "AuthorizationError",
    "ExternalServiceError",
    "AppRole",
    "ProductType",
    "AuthenticatedUser",
    "utc_now",
]
