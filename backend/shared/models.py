"""
Shared data models used across modules.

These models are shared infrastructure, not business logic.
Module-specific models should stay in their respective module directories.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, EmailStr, Field


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class AppRole(str, Enum):
    """
    Application roles.

    Stored on the profile (authoritative) and copied into the access
    token's ``app_role`` claim (cached, possibly stale).
    """

    USER = "USER"
    MEMBER = "MEMBER"
    STAFF = "STAFF"
    ADMIN = "ADMIN"

    @classmethod
    def from_claim(cls, value: Any) -> "AppRole":
        """
        Parse a role string coming from outside the system.

        Unknown or missing values default to USER rather than being
        trusted through the permission table.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        return cls.USER

    @property
    def is_administrative(self) -> bool:
        """STAFF and ADMIN are not affected by membership transitions."""
        return self in (AppRole.STAFF, AppRole.ADMIN)


class AuthenticatedUser(BaseModel):
    """
    Represents an authenticated user in the system.

    This model is populated from JWT claims and made available
    to route handlers via dependency injection.

    ``claim_role`` is the role copied into the token when it was issued.
    It may be stale; permission decisions use the profile role instead.
    """

    id: str = Field(..., description="Identity provider subject (Supabase user UUID)")
    email: Optional[EmailStr] = Field(None, description="User's email address")
    email_verified: bool = Field(default=False, description="Whether email is verified")

    last_sign_in: Optional[datetime] = Field(None, description="Token issue time")
    claim_role: AppRole = Field(default=AppRole.USER, description="Role claim in the token")

    model_config = {
        "frozen": True,  # Make immutable for safety
        "extra": "ignore",  # Ignore extra fields from JWT
    }


class ProductType(str, Enum):
    """Catalog product types."""

    ORANGE = "ORANGE"  # Public
    APPLE = "APPLE"  # Member-gated
    MEMBERSHIP = "MEMBERSHIP"  # Role-granting
