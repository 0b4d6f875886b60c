"""
Membership service implementation.

Owns the transactions for membership-centric operations (status,
revocation, expiry sweep) and publishes resulting role changes to the
claims store after commit.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.models import utc_now
from modules.claims.interfaces import IClaimsSynchronizer
from modules.permissions import OwnerPair, Permission, PermissionDeniedError, has_any_permission
from modules.profiles.exceptions import ProfileNotFoundError
from modules.profiles.models import Profile
from modules.profiles.repository import ProfileRepository

from .exceptions import MembershipNotActiveError, MembershipNotFoundError
from .interfaces import IMembershipService
from .lifecycle import MembershipLifecycle, membership_state
from .models import (
    MembershipCancellation,
    MembershipState,
    MembershipStatus,
    RoleTransition,
    SweepResult,
)
from .repository import MembershipRepository

logger = logging.getLogger(__name__)


async def publish_transition(
    claims: IClaimsSynchronizer,
    transition: RoleTransition,
) -> Optional[str]:
    """
    Publish a committed role change. Returns the claims warning, if any.

    Unchanged roles are not published.
    """
    if not transition.changed:
        return None
    result = await claims.publish_role(transition.auth_user_id, transition.new_role)
    return result.warning


class MembershipService(IMembershipService):
    """
    Membership service over the relational store.

    Args:
        session_factory: Session factory for units of work
        lifecycle: Transition rules shared with the store module
        claims: Claims synchronizer used after commit
        clock: Source of the current time
        sweep_batch_size: Lapsed memberships expired per sweep transaction
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lifecycle: MembershipLifecycle,
        claims: IClaimsSynchronizer,
        clock: Callable[[], datetime] = utc_now,
        sweep_batch_size: int = 500,
    ):
        self._session_factory = session_factory
        self._lifecycle = lifecycle
        self._claims = claims
        self._clock = clock
        self._sweep_batch_size = max(1, sweep_batch_size)

    async def get_status(self, profile_id: str) -> MembershipStatus:
        async with self._session_factory() as session:
            profile = await ProfileRepository(session).get_by_id(profile_id)
            if profile is None:
                raise ProfileNotFoundError(profile_id)
            membership = await MembershipRepository(session).get_for_profile(profile_id)

        return MembershipStatus(
            profile_id=profile_id,
            state=membership_state(membership, self._clock()),
            role=profile.app_role,
            start_date=membership.start_date if membership else None,
            end_date=membership.end_date if membership else None,
        )

    async def cancel_membership(self, profile_id: str, caller: Profile) -> MembershipCancellation:
        decision = has_any_permission(
            [
                (Permission.MEMBERSHIPS_CANCEL_OWN, OwnerPair(caller.id, profile_id)),
                (Permission.MEMBERSHIPS_MANAGE, None),
            ],
            caller.app_role,
        )
        if not decision.allowed:
            raise PermissionDeniedError(
                permission=Permission.MEMBERSHIPS_CANCEL_OWN.value,
                role=caller.app_role.value,
                reason=decision.reason,
            )

        now = self._clock()
        async with self._session_factory() as session, session.begin():
            profile = await ProfileRepository(session).lock(profile_id)
            if profile is None:
                raise ProfileNotFoundError(profile_id)

            memberships = MembershipRepository(session)
            membership = await memberships.get_for_profile(profile_id)
            state = membership_state(membership, now)
            if state == MembershipState.NONE:
                raise MembershipNotFoundError(profile_id)
            if state == MembershipState.EXPIRED:
                raise MembershipNotActiveError(profile_id)

            purchase_ids = await memberships.list_active_membership_purchase_ids(profile_id)
            await memberships.close_purchases(purchase_ids, closed_at=now)
            outcome = await self._lifecycle.cancel(
                session, profile, now, exclude_purchase_ids=set(purchase_ids)
            )

        logger.info(
            "Cancelled membership of profile %s (%d purchase(s) closed, by %s)",
            profile_id,
            len(purchase_ids),
            caller.id,
        )
        warning = await publish_transition(self._claims, outcome.transition)
        return MembershipCancellation(
            profile_id=profile_id,
            cancelled_purchase_ids=purchase_ids,
            membership=outcome.membership,
            role=outcome.transition.new_role,
            claims_warning=warning,
        )

    async def sweep_expire(self) -> SweepResult:
        now = self._clock()
        result = SweepResult()

        while True:
            transitions: list[RoleTransition] = []
            async with self._session_factory() as session, session.begin():
                lapsed = await MembershipRepository(session).find_lapsed(
                    now, limit=self._sweep_batch_size
                )
                for membership in lapsed:
                    profile = await ProfileRepository(session).lock(membership.profile_id)
                    if profile is None:
                        continue
                    outcome = await self._lifecycle.expire(session, profile, now)
                    result.expired_count += 1
                    result.closed_purchases += outcome.closed_purchases
                    if outcome.transition.changed:
                        transitions.append(outcome.transition)

            # Publish only after the batch has committed
            for transition in transitions:
                result.downgraded_count += 1
                warning = await publish_transition(self._claims, transition)
                if warning:
                    result.claims_warnings.append(transition.auth_user_id)

            if len(lapsed) < self._sweep_batch_size:
                break

        logger.info(
            "Expiry sweep: %d expired, %d downgraded, %d purchase(s) closed",
            result.expired_count,
            result.downgraded_count,
            result.closed_purchases,
        )
        return result
