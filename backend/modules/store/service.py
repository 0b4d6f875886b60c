"""
Store service implementation (purchase and soft-delete consistency engine).

Keeps profiles, memberships, purchases and archived products mutually
consistent. Each operation is one unit of work:

    async with session_factory() as session, session.begin():
        ...  # lock rows, check, write through repositories

Locks are always taken in the order product -> profile -> purchase.
Role changes are published to the claims store after the commit.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shared.models import ProductType, utc_now
from modules.claims.interfaces import IClaimsSynchronizer
from modules.memberships.lifecycle import MembershipLifecycle
from modules.memberships.models import RoleTransition
from modules.memberships.repository import MembershipRepository
from modules.memberships.service import publish_transition
from modules.permissions import (
    OwnerPair,
    Permission,
    PermissionDeniedError,
    check_permission,
    has_any_permission,
    require_permission,
)
from modules.profiles.exceptions import ProfileNotFoundError
from modules.profiles.models import Profile
from modules.profiles.repository import ProfileRepository

from .exceptions import (
    InvalidQuantityError,
    ProductHasActivePurchasesError,
    ProductNotFoundError,
    PurchaseAlreadyCancelledError,
    PurchaseNotFoundError,
)
from .interfaces import IStoreService
from .models import (
    ArchiveResult,
    CancelPurchaseOutcome,
    CreateProductRequest,
    Product,
    PurchaseDetail,
    PurchaseOutcome,
)
from .repository import ProductRepository, PurchaseRepository

logger = logging.getLogger(__name__)

# Product types STAFF may never archive, even their own
STAFF_PROTECTED_TYPES = (ProductType.APPLE, ProductType.MEMBERSHIP)


class StoreService(IStoreService):
    """
    Store service over the relational store.

    Args:
        session_factory: Session factory for units of work
        lifecycle: Membership transition rules
        claims: Claims synchronizer used after commit
        clock: Source of the current time
        archive_batch_size: Subscribers processed per archive call
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lifecycle: MembershipLifecycle,
        claims: IClaimsSynchronizer,
        clock: Callable[[], datetime] = utc_now,
        archive_batch_size: int = 200,
    ):
        self._session_factory = session_factory
        self._lifecycle = lifecycle
        self._claims = claims
        self._clock = clock
        self._archive_batch_size = max(1, archive_batch_size)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    async def create_product(self, caller: Profile, request: CreateProductRequest) -> Product:
        require_permission(Permission.PRODUCTS_CREATE, caller.app_role)
        if request.type == ProductType.MEMBERSHIP:
            require_permission(Permission.MEMBERSHIPS_MANAGE, caller.app_role)

        async with self._session_factory() as session, session.begin():
            product = await ProductRepository(session).create(
                name=request.name,
                product_type=request.type,
                price=request.price,
                created_by=caller.id,
                now=self._clock(),
            )
        logger.info("Profile %s created %s product %s", caller.id, product.type.value, product.id)
        return product

    async def list_products(self, caller: Profile, include_archived: bool = False) -> list[Product]:
        if include_archived:
            require_permission(Permission.ACCESS_ADMIN, caller.app_role)

        types: Optional[list[ProductType]] = None
        if not check_permission(Permission.ACCESS_MEMBER, caller.app_role).allowed:
            types = [t for t in ProductType if t != ProductType.APPLE]

        async with self._session_factory() as session:
            return await ProductRepository(session).list_products(
                include_archived=include_archived, types=types
            )

    async def get_product(self, product_id: str) -> Product:
        async with self._session_factory() as session:
            product = await ProductRepository(session).get_by_id(product_id)
        if product is None or product.is_archived:
            raise ProductNotFoundError(product_id)
        return product

    # -------------------------------------------------------------------------
    # Purchases
    # -------------------------------------------------------------------------

    async def purchase(self, profile_id: str, product_id: str, quantity: int = 1) -> PurchaseOutcome:
        now = self._clock()

        async with self._session_factory() as session, session.begin():
            product = await ProductRepository(session).lock(product_id, shared=True)
            if product is None or product.is_archived:
                raise ProductNotFoundError(product_id)
            if quantity < 1 or (product.type == ProductType.MEMBERSHIP and quantity != 1):
                raise InvalidQuantityError(product.type, quantity)

            profile = await ProfileRepository(session).lock(profile_id)
            if profile is None:
                raise ProfileNotFoundError(profile_id)
            previous_role = profile.app_role

            # Close out a lapsed term the sweep has not reached yet
            expired = await self._lifecycle.expire(session, profile, now)
            profile = profile.model_copy(update={"app_role": expired.transition.new_role})

            if product.type == ProductType.APPLE:
                require_permission(Permission.ACCESS_MEMBER, profile.app_role)

            membership = None
            if product.type == ProductType.MEMBERSHIP:
                granted = await self._lifecycle.grant(session, profile, now)
                membership = granted.membership
                profile = profile.model_copy(update={"app_role": granted.transition.new_role})

            purchase = await PurchaseRepository(session).create(profile_id, product, quantity, now)

        logger.info(
            "Profile %s purchased %s product %s (purchase %s)",
            profile_id,
            product.type.value,
            product_id,
            purchase.id,
        )
        transition = RoleTransition(
            profile_id=profile.id,
            auth_user_id=profile.auth_user_id,
            previous_role=previous_role,
            new_role=profile.app_role,
        )
        warning = await publish_transition(self._claims, transition)
        return PurchaseOutcome(
            purchase=purchase,
            membership=membership,
            role=profile.app_role,
            claims_warning=warning,
        )

    async def cancel_purchase(self, purchase_id: str, caller: Profile) -> CancelPurchaseOutcome:
        now = self._clock()

        async with self._session_factory() as session, session.begin():
            purchases = PurchaseRepository(session)
            purchase = await purchases.get_by_id(purchase_id)
            if purchase is None:
                raise PurchaseNotFoundError(purchase_id)

            decision = has_any_permission(
                [
                    (Permission.PURCHASES_CANCEL_OWN, OwnerPair(caller.id, purchase.profile_id)),
                    (Permission.PURCHASES_CANCEL_ANY, None),
                ],
                caller.app_role,
            )
            if not decision.allowed:
                raise PermissionDeniedError(
                    permission=Permission.PURCHASES_CANCEL_OWN.value,
                    role=caller.app_role.value,
                    reason=decision.reason,
                )

            product = await ProductRepository(session).get_by_id(purchase.product_id)
            profile = await ProfileRepository(session).lock(purchase.profile_id)
            if profile is None:
                raise ProfileNotFoundError(purchase.profile_id)

            # Re-read under the profile lock; a concurrent cancel may have won
            purchase = await purchases.lock(purchase_id)
            if not purchase.is_active:
                raise PurchaseAlreadyCancelledError(purchase_id)

            purchase = await purchases.cancel(purchase_id, now)

            membership = None
            transition = RoleTransition(
                profile_id=profile.id,
                auth_user_id=profile.auth_user_id,
                previous_role=profile.app_role,
                new_role=profile.app_role,
            )
            if product is not None and product.type == ProductType.MEMBERSHIP:
                outcome = await self._lifecycle.cancel(
                    session, profile, now, exclude_purchase_ids={purchase_id}
                )
                membership = outcome.membership
                transition = outcome.transition

        logger.info("Purchase %s cancelled by profile %s", purchase_id, caller.id)
        warning = await publish_transition(self._claims, transition)
        return CancelPurchaseOutcome(
            purchase=purchase,
            membership=membership,
            role=transition.new_role,
            claims_warning=warning,
        )

    async def list_purchases(self, profile_id: str) -> list[PurchaseDetail]:
        async with self._session_factory() as session:
            return await PurchaseRepository(session).list_for_profile(profile_id)

    # -------------------------------------------------------------------------
    # Archiving
    # -------------------------------------------------------------------------

    async def archive_product(self, product_id: str, caller: Profile) -> ArchiveResult:
        now = self._clock()
        transitions: list[RoleTransition] = []

        async with self._session_factory() as session, session.begin():
            products = ProductRepository(session)
            purchases = PurchaseRepository(session)

            product = await products.lock(product_id)
            if product is None or product.is_archived:
                raise ProductNotFoundError(product_id)
            self._authorize_archive(caller, product)

            if product.type != ProductType.MEMBERSHIP:
                active = await purchases.count_active_for_product(product_id)
                if active > 0:
                    raise ProductHasActivePurchasesError(product_id, product.type, active)
                product = await products.archive(product_id, now)
                logger.info("Profile %s archived %s product %s", caller.id, product.type.value, product_id)
                return ArchiveResult(product=product, archived=True)

            subscriber_ids = await purchases.list_subscriber_ids(
                product_id, limit=self._archive_batch_size + 1
            )
            batch = subscriber_ids[: self._archive_batch_size]
            cancelled = 0
            for subscriber_id in batch:
                profile = await ProfileRepository(session).lock(subscriber_id)
                if profile is None:
                    raise ProfileNotFoundError(subscriber_id)
                purchase_ids = await purchases.list_active_ids(product_id, subscriber_id)
                cancelled += await MembershipRepository(session).close_purchases(
                    purchase_ids, closed_at=now
                )
                outcome = await self._lifecycle.cancel(
                    session,
                    profile,
                    now,
                    exclude_purchase_ids=set(purchase_ids),
                    exclude_product_id=product_id,
                )
                transitions.append(outcome.transition)

            remaining = 0
            if len(subscriber_ids) > len(batch):
                remaining = await purchases.count_subscribers(product_id)
            else:
                product = await products.archive(product_id, now)

        downgraded = [t for t in transitions if t.changed]
        logger.info(
            "Membership product %s cascade by %s: %d subscriber(s), %d purchase(s) cancelled, "
            "%d downgraded, %d remaining",
            product_id,
            caller.id,
            len(transitions),
            cancelled,
            len(downgraded),
            remaining,
        )

        warnings: list[str] = []
        for transition in downgraded:
            if await publish_transition(self._claims, transition):
                warnings.append(transition.auth_user_id)

        return ArchiveResult(
            product=product,
            archived=remaining == 0,
            cancelled_purchases=cancelled,
            downgraded_profiles=len(downgraded),
            remaining_subscribers=remaining,
            claims_warnings=warnings,
        )

    def _authorize_archive(self, caller: Profile, product: Product) -> None:
        """
        Archive rules layered on the permission table.

        ADMIN archives anything. Everyone else needs ``products:delete:own``
        on a product they created, and STAFF may never archive APPLE or
        MEMBERSHIP products.
        """
        if check_permission(Permission.PRODUCTS_DELETE, caller.app_role).allowed:
            return

        require_permission(
            Permission.PRODUCTS_DELETE_OWN,
            caller.app_role,
            OwnerPair(caller.id, product.created_by),
        )
        if product.type in STAFF_PROTECTED_TYPES:
            raise PermissionDeniedError(
                permission=Permission.PRODUCTS_DELETE_OWN.value,
                role=caller.app_role.value,
                reason=f"Your role cannot delete {product.type.value} products",
            )
