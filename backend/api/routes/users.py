"""
User-related endpoints.

Provides the caller's profile, role and membership, and the claims
refresh used by clients after a role change.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from shared.models import AppRole, AuthenticatedUser
from modules.claims.interfaces import IClaimsSynchronizer
from modules.claims.models import ClaimsSyncResult
from modules.memberships.interfaces import IMembershipService
from modules.memberships.models import MembershipStatus
from modules.profiles.models import Profile
from ..dependencies import get_claims_service, get_membership_service
from ..middleware.auth import get_current_profile, get_current_user

router = APIRouter()


class UserProfileResponse(BaseModel):
    """User profile response model."""

    id: str
    profile_id: str
    email: Optional[str] = None
    email_verified: bool
    role: AppRole
    claim_role: AppRole
    claims_stale: bool
    created_at: datetime
    membership: MembershipStatus


@router.get("/me", response_model=UserProfileResponse)
async def get_current_user_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    profile: Profile = Depends(get_current_profile),
    memberships: IMembershipService = Depends(get_membership_service),
) -> UserProfileResponse:
    """
    Get the current user's profile.

    ``role`` is authoritative; ``claims_stale`` tells the client its token
    carries an outdated role and it should refresh claims.
    """
    membership = await memberships.get_status(profile.id)
    return UserProfileResponse(
        id=user.id,
        profile_id=profile.id,
        email=user.email,
        email_verified=user.email_verified,
        role=profile.app_role,
        claim_role=user.claim_role,
        claims_stale=user.claim_role != profile.app_role,
        created_at=profile.created_at,
        membership=membership,
    )


@router.post("/me/claims/refresh", response_model=ClaimsSyncResult)
async def refresh_claims(
    profile: Profile = Depends(get_current_profile),
    claims: IClaimsSynchronizer = Depends(get_claims_service),
) -> ClaimsSyncResult:
    """
    Reconcile the caller's role claim with their profile role.

    Best-effort: failures come back as ``warning`` with ``synced=false``.
    """
    return await claims.reconcile(profile.auth_user_id)
