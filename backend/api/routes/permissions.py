"""
Permission check endpoint.

Lets the render layer ask whether the caller may perform an action, using
the caller's profile role rather than the token claim.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from modules.permissions import OwnerPair, PermissionResult, check_permission
from modules.profiles.models import Profile
from ..middleware.auth import get_current_profile

router = APIRouter()


@router.get("/check", response_model=PermissionResult)
async def check(
    permission: str = Query(..., description="Permission identifier, e.g. products:create"),
    resource_owner_id: Optional[str] = Query(
        default=None, description="Owner profile ID for ownership-scoped permissions"
    ),
    profile: Profile = Depends(get_current_profile),
) -> PermissionResult:
    """Check a permission for the caller."""
    owner_pair = OwnerPair(profile.id, resource_owner_id) if resource_owner_id else None
    return check_permission(permission, profile.app_role, owner_pair)
