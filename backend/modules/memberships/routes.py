"""
Membership API endpoints.

Status and revocation for profiles, plus the expiry sweep entry point for
the external scheduler.
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, status

from api.middleware.auth import get_current_profile, get_optional_user
from api.dependencies import get_membership_service, get_profile_service
from shared.config import get_settings
from shared.models import AuthenticatedUser
from modules.permissions import Permission, require_permission
from modules.profiles.interfaces import IProfileService
from modules.profiles.models import Profile

from .interfaces import IMembershipService
from .models import MembershipCancellation, MembershipStatus, SweepResult

router = APIRouter()


@router.get("/me", response_model=MembershipStatus)
async def get_my_membership(
    profile: Profile = Depends(get_current_profile),
    service: IMembershipService = Depends(get_membership_service),
) -> MembershipStatus:
    """Get the caller's membership state."""
    return await service.get_status(profile.id)


async def require_sweep_access(
    x_cron_secret: Optional[str] = Header(default=None),
    user: Optional[AuthenticatedUser] = Depends(get_optional_user),
    profiles: IProfileService = Depends(get_profile_service),
) -> None:
    """
    Allow the scheduler (shared secret) or an ADMIN bearer token.

    An empty ``cron_secret`` setting disables secret-based access.
    """
    secret = get_settings().cron_secret
    if secret and x_cron_secret and hmac.compare_digest(secret, x_cron_secret):
        return

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    profile = await profiles.ensure_profile(user)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    require_permission(Permission.MEMBERSHIPS_MANAGE, profile.app_role)


@router.post("/sweep", response_model=SweepResult, dependencies=[Depends(require_sweep_access)])
async def sweep_expired_memberships(
    service: IMembershipService = Depends(get_membership_service),
) -> SweepResult:
    """Expire lapsed memberships and downgrade their roles."""
    return await service.sweep_expire()


@router.delete("/{profile_id}", response_model=MembershipCancellation)
async def cancel_membership(
    profile_id: str,
    profile: Profile = Depends(get_current_profile),
    service: IMembershipService = Depends(get_membership_service),
) -> MembershipCancellation:
    """
    Cancel a profile's membership.

    Members may cancel their own; ADMIN may cancel anyone's.
    """
    return await service.cancel_membership(profile_id, profile)
