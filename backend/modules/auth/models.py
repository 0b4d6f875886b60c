"""
Authentication module data models.

These models define the data structures used by the auth module
and exposed to other modules through the interface.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field

from shared.models import AppRole


class JWTPayload(BaseModel):
    """
    Decoded JWT token payload from Supabase.

    This matches the structure of Supabase Auth JWTs. The custom access
    token hook copies the profile role into a top-level ``app_role`` claim;
    older tokens only carry it in ``app_metadata``.
    """

    sub: str = Field(..., description="Subject (user ID)")
    email: Optional[str] = Field(None, description="User's email")
    email_confirmed_at: Optional[str] = Field(None, description="Email confirmation time")
    exp: int = Field(..., description="Expiration timestamp")
    iat: int = Field(..., description="Issued at timestamp")
    aud: str = Field(default="authenticated", description="Audience")
    role: str = Field(default="authenticated", description="Postgres role")
    app_role: Optional[Any] = Field(None, description="Cached application role")

    # Supabase-specific claims
    app_metadata: dict = Field(default_factory=dict)
    user_metadata: dict = Field(default_factory=dict)

    model_config = {"extra": "ignore"}

    @property
    def claim_role(self) -> AppRole:
        """Role claim validated against AppRole (unknown or missing -> USER)."""
        value = self.app_role
        if value is None:
            value = self.app_metadata.get("app_role")
        return AppRole.from_claim(value)

    @property
    def is_email_verified(self) -> bool:
        if self.email_confirmed_at:
            return True
        return bool(self.user_metadata.get("email_verified"))
