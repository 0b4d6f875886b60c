"""
Profile module data models.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from shared.models import AppRole


class Profile(BaseModel):
    """
    Application-level user record, one per external identity.

    ``app_role`` is the single source of truth for authorization.
    """

    id: str = Field(..., description="Profile ID (UUID)")
    auth_user_id: str = Field(..., description="Identity provider subject")
    app_role: AppRole = Field(default=AppRole.USER, description="Authoritative role")
    created_at: datetime = Field(..., description="Creation time")
