"""
Membership lifecycle state machine.

States per profile: NONE -> ACTIVE <-> EXPIRED (no terminal state).
``app_role`` is MEMBER exactly when the state is ACTIVE, except for STAFF
and ADMIN, which membership transitions never touch.

Transitions run inside a transaction opened by the caller (the store or
membership service), after the caller has locked the profile row. They
never commit and never talk to the claims store: the caller publishes the
returned RoleTransition once the transaction has committed.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models import AppRole
from modules.profiles.models import Profile
from modules.profiles.repository import ProfileRepository

from .exceptions import MembershipAlreadyActiveError
from .models import Membership, MembershipState, RoleTransition
from .repository import MembershipRepository

logger = logging.getLogger(__name__)


class TransitionOutcome(BaseModel):
    """Result of one lifecycle transition."""

    membership: Optional[Membership] = None
    transition: RoleTransition
    closed_purchases: int = 0


def membership_state(membership: Optional[Membership], now: datetime) -> MembershipState:
    """Derive the lifecycle state from the membership row."""
    if membership is None:
        return MembershipState.NONE
    if membership.is_active(now):
        return MembershipState.ACTIVE
    return MembershipState.EXPIRED


def _role_with_membership(role: AppRole) -> AppRole:
    return role if role.is_administrative else AppRole.MEMBER


def _role_without_membership(role: AppRole) -> AppRole:
    return AppRole.USER if role == AppRole.MEMBER else role


class MembershipLifecycle:
    """
    Applies membership transitions for one profile at a time.

    Args:
        term: Length of a membership term granted by one purchase
    """

    def __init__(self, term: timedelta):
        self._term = term

    @property
    def term(self) -> timedelta:
        return self._term

    async def grant(
        self,
        session: AsyncSession,
        profile: Profile,
        now: datetime,
    ) -> TransitionOutcome:
        """
        NONE or EXPIRED -> ACTIVE.

        Creates the membership row or overwrites its term with
        ``now + term`` (renewal does not stack), and promotes USER to MEMBER.

        Raises:
            MembershipAlreadyActiveError: If the membership is already ACTIVE
        """
        memberships = MembershipRepository(session)
        current = await memberships.get_for_profile(profile.id)
        state = membership_state(current, now)

        if state == MembershipState.ACTIVE:
            raise MembershipAlreadyActiveError(profile.id, current.end_date if current else None)

        end_date = now + self._term
        if current is None:
            try:
                membership = await memberships.create(profile.id, start_date=now, end_date=end_date)
            except IntegrityError as e:
                # Another handler created the row first
                raise MembershipAlreadyActiveError(profile.id) from e
        else:
            membership = await memberships.set_term(profile.id, now, end_date, now=now)

        transition = await self._set_role(session, profile, _role_with_membership(profile.app_role), now)
        logger.info(
            "Granted membership to profile %s until %s (%s)",
            profile.id,
            end_date.isoformat(),
            "renewal" if current is not None else "new",
        )
        return TransitionOutcome(membership=membership, transition=transition)

    async def cancel(
        self,
        session: AsyncSession,
        profile: Profile,
        now: datetime,
        exclude_purchase_ids: Optional[set[str]] = None,
        exclude_product_id: Optional[str] = None,
    ) -> TransitionOutcome:
        """
        ACTIVE -> EXPIRED, unless another membership purchase still backs it.

        The caller has already closed the purchases named in
        ``exclude_purchase_ids`` (or is archiving ``exclude_product_id``).
        If the profile holds any other active purchase of a non-archived
        MEMBERSHIP product, nothing changes. Otherwise the membership ends
        now and a MEMBER is downgraded to USER. Re-running is a no-op.
        """
        memberships = MembershipRepository(session)
        others = await memberships.count_active_membership_purchases(
            profile.id,
            exclude_purchase_ids=exclude_purchase_ids,
            exclude_product_id=exclude_product_id,
        )
        membership = await memberships.get_for_profile(profile.id)

        if others > 0:
            logger.info(
                "Profile %s keeps membership: %d other active membership purchase(s)",
                profile.id,
                others,
            )
            return TransitionOutcome(
                membership=membership,
                transition=self._unchanged(profile),
            )

        if membership_state(membership, now) == MembershipState.ACTIVE:
            membership = await memberships.set_end_date(profile.id, now, now=now)

        transition = await self._set_role(session, profile, _role_without_membership(profile.app_role), now)
        return TransitionOutcome(membership=membership, transition=transition)

    async def expire(
        self,
        session: AsyncSession,
        profile: Profile,
        now: datetime,
    ) -> TransitionOutcome:
        """
        Close out a term whose end date has passed.

        Open MEMBERSHIP purchases that backed the lapsed term are closed at
        the term's end date, then a MEMBER is downgraded to USER. A profile
        whose membership is still ACTIVE is left untouched, so racing with a
        renewal or a cancellation is harmless.

        Unlike ``cancel`` there is no "other membership purchase" check: a
        profile has a single term, so every purchase still open once it has
        ended backed that term and is closed with it.
        """
        memberships = MembershipRepository(session)
        membership = await memberships.get_for_profile(profile.id)

        if membership_state(membership, now) != MembershipState.EXPIRED:
            return TransitionOutcome(membership=membership, transition=self._unchanged(profile))

        purchase_ids = await memberships.list_active_membership_purchase_ids(profile.id)
        closed = await memberships.close_purchases(purchase_ids, closed_at=membership.end_date)

        transition = await self._set_role(session, profile, _role_without_membership(profile.app_role), now)
        return TransitionOutcome(membership=membership, transition=transition, closed_purchases=closed)

    async def _set_role(
        self,
        session: AsyncSession,
        profile: Profile,
        role: AppRole,
        now: datetime,
    ) -> RoleTransition:
        if role != profile.app_role:
            await ProfileRepository(session).set_role(profile.id, role, now)
            logger.info("Profile %s role %s -> %s", profile.id, profile.app_role.value, role.value)
        return RoleTransition(
            profile_id=profile.id,
            auth_user_id=profile.auth_user_id,
            previous_role=profile.app_role,
            new_role=role,
        )

    @staticmethod
    def _unchanged(profile: Profile) -> RoleTransition:
        return RoleTransition(
            profile_id=profile.id,
            auth_user_id=profile.auth_user_id,
            previous_role=profile.app_role,
            new_role=profile.app_role,
        )
