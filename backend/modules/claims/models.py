"""
Claims module data models.
"""

from typing import Optional

from pydantic import BaseModel, Field

from shared.models import AppRole


class ClaimsSyncResult(BaseModel):
    """
    Outcome of a claims refresh or reconciliation.

    ``warning`` is set when the claims store could not be updated. The
    business operation that triggered the sync has already committed; the
    client should retry reconciliation.
    """

    auth_user_id: str = Field(..., description="Identity provider subject")
    role: Optional[AppRole] = Field(None, description="Authoritative profile role")
    claim_role: Optional[AppRole] = Field(None, description="Role claim before the sync")
    changed: bool = Field(default=False, description="Whether the claim was rewritten")
    synced: bool = Field(default=True, description="Whether the claims store is converged")
    warning: Optional[str] = Field(None, description="Non-fatal sync failure message")
