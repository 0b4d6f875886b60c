"""
Permission module data models.

Permissions are a closed set of identifiers. An identifier ending in
``:own`` is ownership-scoped: the caller must also own the resource.
"""

from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, Field


class Permission(str, Enum):
    """Every permission the system knows about."""

    PRODUCTS_CREATE = "products:create"
    PRODUCTS_DELETE = "products:delete"
    PRODUCTS_DELETE_OWN = "products:delete:own"
    ACCESS_ADMIN = "access:admin"
    ACCESS_MEMBER = "access:member"
    MEMBERSHIPS_MANAGE = "memberships:manage"
    MEMBERSHIPS_CANCEL_OWN = "memberships:cancel:own"
    PURCHASES_CANCEL_OWN = "purchases:cancel:own"
    PURCHASES_CANCEL_ANY = "purchases:cancel:any"

    @property
    def requires_ownership(self) -> bool:
        return self.value.endswith(":own")


class OwnerPair(NamedTuple):
    """(caller profile id, resource owner profile id)."""

    owner_id: str
    resource_owner_id: str


class PermissionResult(BaseModel):
    """Outcome of a permission decision."""

    allowed: bool = Field(..., description="Whether the action is allowed")
    reason: Optional[str] = Field(None, description="Why the action was denied")

    model_config = {"frozen": True}
