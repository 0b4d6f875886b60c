"""Tests for the store service (purchases, cancellation and archiving)."""

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from shared.models import AppRole, ProductType
from modules.claims import ClaimsStoreError
from modules.claims.service import ClaimsSynchronizer
from modules.memberships import MembershipAlreadyActiveError
from modules.permissions import PermissionDeniedError
from modules.store import (
    CreateProductRequest,
    InvalidQuantityError,
    IStoreService,
    ProductHasActivePurchasesError,
    ProductNotFoundError,
    PurchaseAlreadyCancelledError,
    PurchaseNotFoundError,
)
from modules.store.repository import PurchaseRepository
from modules.store.service import StoreService

from tests.conftest import MEMBERSHIP_TERM, assert_membership_invariant, profile_state


def _as_role(profile, role: AppRole):
    return profile.model_copy(update={"app_role": role})


class TestCreateProduct:
    def test_implements_interface(self, store_service):
        """StoreService should satisfy IStoreService."""
        assert isinstance(store_service, IStoreService)

    @pytest.mark.asyncio
    async def test_staff_creates_product(self, store_service, staff):
        """STAFF should be able to create regular products."""
        product = await store_service.create_product(
            staff, CreateProductRequest(name="  Navel  ", type=ProductType.ORANGE, price=Decimal("1.50"))
        )
        assert product.name == "Navel"
        assert product.created_by == staff.id
        assert not product.is_archived

    @pytest.mark.asyncio
    async def test_user_cannot_create(self, store_service, user):
        """USER lacks products:create."""
        with pytest.raises(PermissionDeniedError):
            await store_service.create_product(
                user, CreateProductRequest(name="Fuji", type=ProductType.APPLE, price=Decimal("2"))
            )

    @pytest.mark.asyncio
    async def test_staff_cannot_create_membership(self, store_service, staff, admin):
        """Only ADMIN may create MEMBERSHIP products."""
        request = CreateProductRequest(name="Gold", type=ProductType.MEMBERSHIP, price=Decimal("99"))
        with pytest.raises(PermissionDeniedError):
            await store_service.create_product(staff, request)
        product = await store_service.create_product(admin, request)
        assert product.type == ProductType.MEMBERSHIP


class TestListProducts:
    @pytest.mark.asyncio
    async def test_apples_hidden_from_users(self, store_service, make_product, staff, user):
        """APPLE products should only be listed for member-level roles."""
        await make_product(staff, ProductType.APPLE)
        await make_product(staff, ProductType.ORANGE)

        user_view = await store_service.list_products(user)
        member_view = await store_service.list_products(_as_role(user, AppRole.MEMBER))

        assert {p.type for p in user_view} == {ProductType.ORANGE}
        assert {p.type for p in member_view} == {ProductType.APPLE, ProductType.ORANGE}

    @pytest.mark.asyncio
    async def test_archived_listing_requires_admin_access(
        self, store_service, make_product, staff, user
    ):
        """include_archived should require access:admin and show archived rows."""
        product = await make_product(staff, ProductType.ORANGE)
        await store_service.archive_product(product.id, staff)

        assert await store_service.list_products(staff) == []
        archived = await store_service.list_products(staff, include_archived=True)
        assert [p.id for p in archived] == [product.id]
        with pytest.raises(PermissionDeniedError):
            await store_service.list_products(user, include_archived=True)

    @pytest.mark.asyncio
    async def test_get_archived_product_not_found(self, store_service, make_product, staff):
        """Archived products should read as not found."""
        product = await make_product(staff, ProductType.ORANGE)
        await store_service.archive_product(product.id, staff)
        with pytest.raises(ProductNotFoundError):
            await store_service.get_product(product.id)


class TestPurchase:
    @pytest.mark.asyncio
    async def test_membership_purchase_grants_member(
        self, store_service, session_factory, claims_store, membership_product, user, clock
    ):
        """Buying a membership should make the profile a MEMBER for one term."""
        outcome = await store_service.purchase(user.id, membership_product.id)

        assert outcome.role == AppRole.MEMBER
        assert outcome.membership.end_date == clock() + MEMBERSHIP_TERM
        assert outcome.purchase.total == Decimal("99.00")
        assert outcome.claims_warning is None
        assert await claims_store.read_role(user.auth_user_id) == AppRole.MEMBER
        assert_membership_invariant(await profile_state(session_factory, user.id), clock())

    @pytest.mark.asyncio
    async def test_second_membership_while_active_conflicts(
        self, store_service, session_factory, membership_product, user, clock
    ):
        """A second membership purchase during an active term is rejected."""
        await store_service.purchase(user.id, membership_product.id)
        with pytest.raises(MembershipAlreadyActiveError):
            await store_service.purchase(user.id, membership_product.id)
        async with session_factory() as session:
            purchases = await PurchaseRepository(session).list_for_profile(user.id)
        assert len(purchases) == 1

    @pytest.mark.asyncio
    async def test_membership_quantity_must_be_one(self, store_service, membership_product, user):
        """MEMBERSHIP purchases only allow a quantity of one."""
        with pytest.raises(InvalidQuantityError):
            await store_service.purchase(user.id, membership_product.id, quantity=2)

    @pytest.mark.asyncio
    async def test_non_positive_quantity_rejected(self, store_service, make_product, staff, user):
        """Quantities below one are rejected for every product type."""
        orange = await make_product(staff, ProductType.ORANGE, price=Decimal("2.00"))
        for quantity in (0, -3):
            with pytest.raises(InvalidQuantityError):
                await store_service.purchase(user.id, orange.id, quantity=quantity)
        assert await store_service.list_purchases(user.id) == []

    @pytest.mark.asyncio
    async def test_price_snapshot(self, store_service, make_product, staff, user):
        """The purchase total should be price times quantity at purchase time."""
        product = await make_product(staff, ProductType.ORANGE, price=Decimal("9.99"))
        outcome = await store_service.purchase(user.id, product.id, quantity=3)
        assert outcome.purchase.total == Decimal("29.97")
        assert outcome.membership is None
        assert outcome.role == AppRole.USER

    @pytest.mark.asyncio
    async def test_apple_requires_member_access(self, store_service, make_product, staff, user):
        """USER cannot buy APPLE products; a MEMBER can."""
        apple = await make_product(staff, ProductType.APPLE)
        with pytest.raises(PermissionDeniedError):
            await store_service.purchase(user.id, apple.id)

        outcome = await store_service.purchase(staff.id, apple.id)
        assert outcome.purchase.product_id == apple.id

    @pytest.mark.asyncio
    async def test_archived_product_not_found(self, store_service, make_product, staff, user):
        """Archived products cannot be purchased."""
        product = await make_product(staff, ProductType.ORANGE)
        await store_service.archive_product(product.id, staff)
        with pytest.raises(ProductNotFoundError):
            await store_service.purchase(user.id, product.id)

    @pytest.mark.asyncio
    async def test_unknown_product_not_found(self, store_service, user):
        with pytest.raises(ProductNotFoundError):
            await store_service.purchase(user.id, "missing")

    @pytest.mark.asyncio
    async def test_lapsed_membership_expired_on_next_purchase(
        self, store_service, session_factory, make_product, membership_product, staff, user, clock
    ):
        """A purchase after the term ends should first close out the lapsed membership."""
        await store_service.purchase(user.id, membership_product.id)
        clock.advance(days=366)
        orange = await make_product(staff, ProductType.ORANGE)

        outcome = await store_service.purchase(user.id, orange.id)

        assert outcome.role == AppRole.USER
        state = await profile_state(session_factory, user.id)
        assert state["active_membership_purchases"] == 0
        assert_membership_invariant(state, clock())

        renewed = await store_service.purchase(user.id, membership_product.id)
        assert renewed.role == AppRole.MEMBER
        assert renewed.membership.start_date == clock()
        assert renewed.membership.end_date == clock() + MEMBERSHIP_TERM

    @pytest.mark.asyncio
    async def test_claims_failure_returns_warning(
        self, session_factory, lifecycle, membership_product, user, clock
    ):
        """A claims store outage should not undo the committed purchase."""
        store = AsyncMock()
        store.write_role.side_effect = ClaimsStoreError("unavailable", user.auth_user_id)
        service = StoreService(
            session_factory=session_factory,
            lifecycle=lifecycle,
            claims=ClaimsSynchronizer(store, session_factory, reconcile_backoff_seconds=0),
            clock=clock,
        )

        outcome = await service.purchase(user.id, membership_product.id)

        assert outcome.claims_warning is not None
        assert (await profile_state(session_factory, user.id))["role"] == AppRole.MEMBER


class TestCancelPurchase:
    @pytest.mark.asyncio
    async def test_cancel_membership_purchase_downgrades(
        self, store_service, session_factory, membership_product, user, clock
    ):
        """Cancelling the backing purchase should end the membership now."""
        bought = await store_service.purchase(user.id, membership_product.id)
        clock.advance(days=10)

        outcome = await store_service.cancel_purchase(bought.purchase.id, user)

        assert outcome.role == AppRole.USER
        assert outcome.purchase.deleted_at == clock()
        assert outcome.membership.end_date == clock()
        assert_membership_invariant(await profile_state(session_factory, user.id), clock())

    @pytest.mark.asyncio
    async def test_cancel_twice_conflicts(self, store_service, make_product, staff, user):
        """A cancelled purchase cannot be cancelled again."""
        product = await make_product(staff, ProductType.ORANGE)
        bought = await store_service.purchase(user.id, product.id)
        await store_service.cancel_purchase(bought.purchase.id, user)
        with pytest.raises(PurchaseAlreadyCancelledError):
            await store_service.cancel_purchase(bought.purchase.id, user)

    @pytest.mark.asyncio
    async def test_other_user_forbidden(self, store_service, make_product, make_profile, staff, user):
        """Only the owner or ADMIN may cancel a purchase."""
        product = await make_product(staff, ProductType.ORANGE)
        bought = await store_service.purchase(user.id, product.id)
        other = await make_profile()

        with pytest.raises(PermissionDeniedError):
            await store_service.cancel_purchase(bought.purchase.id, other)
        with pytest.raises(PermissionDeniedError):
            await store_service.cancel_purchase(bought.purchase.id, staff)

    @pytest.mark.asyncio
    async def test_admin_cancels_any(self, store_service, membership_product, user, admin):
        """ADMIN may cancel anyone's purchase; the buyer is downgraded."""
        bought = await store_service.purchase(user.id, membership_product.id)
        outcome = await store_service.cancel_purchase(bought.purchase.id, admin)
        assert outcome.role == AppRole.USER

    @pytest.mark.asyncio
    async def test_unknown_purchase(self, store_service, user):
        with pytest.raises(PurchaseNotFoundError):
            await store_service.cancel_purchase("missing", user)

    @pytest.mark.asyncio
    async def test_list_purchases_keeps_cancelled(self, store_service, make_product, staff, user):
        """Purchase history includes cancelled purchases with their product."""
        product = await make_product(staff, ProductType.ORANGE)
        first = await store_service.purchase(user.id, product.id)
        await store_service.cancel_purchase(first.purchase.id, user)
        await store_service.purchase(user.id, product.id, quantity=2)

        history = await store_service.list_purchases(user.id)

        assert len(history) == 2
        assert {p.product.id for p in history} == {product.id}
        assert sum(1 for p in history if p.is_active) == 1


class TestArchiveProduct:
    @pytest.mark.asyncio
    async def test_active_purchases_block_archive(self, store_service, make_product, staff, user):
        """Non-membership products with active purchases cannot be archived."""
        product = await make_product(staff, ProductType.ORANGE)
        bought = await store_service.purchase(user.id, product.id)

        with pytest.raises(ProductHasActivePurchasesError) as exc_info:
            await store_service.archive_product(product.id, staff)
        assert exc_info.value.message.startswith("Cannot delete this orange")

        await store_service.cancel_purchase(bought.purchase.id, user)
        result = await store_service.archive_product(product.id, staff)
        assert result.archived

    @pytest.mark.asyncio
    async def test_staff_cannot_archive_others_products(self, store_service, make_product, admin, staff):
        """STAFF may only archive products they created."""
        product = await make_product(admin, ProductType.ORANGE)
        with pytest.raises(PermissionDeniedError):
            await store_service.archive_product(product.id, staff)

    @pytest.mark.asyncio
    async def test_staff_cannot_archive_apples(self, store_service, make_product, staff):
        """STAFF may never archive APPLE products, even their own."""
        product = await make_product(staff, ProductType.APPLE)
        with pytest.raises(PermissionDeniedError):
            await store_service.archive_product(product.id, staff)

    @pytest.mark.asyncio
    async def test_archive_twice_not_found(self, store_service, make_product, admin):
        product = await make_product(admin, ProductType.ORANGE)
        await store_service.archive_product(product.id, admin)
        with pytest.raises(ProductNotFoundError):
            await store_service.archive_product(product.id, admin)

    @pytest.mark.asyncio
    async def test_membership_cascade(
        self, store_service, session_factory, claims_store, make_profile, membership_product,
        admin, clock,
    ):
        """Archiving a membership product should downgrade every subscriber."""
        subscribers = [await make_profile() for _ in range(3)]
        for profile in subscribers:
            await store_service.purchase(profile.id, membership_product.id)

        result = await store_service.archive_product(membership_product.id, admin)

        assert result.archived
        assert result.cancelled_purchases == 3
        assert result.downgraded_profiles == 3
        assert result.remaining_subscribers == 0
        assert result.claims_warnings == []
        for profile in subscribers:
            state = await profile_state(session_factory, profile.id)
            assert state["role"] == AppRole.USER
            assert state["membership"].end_date == clock()
            assert_membership_invariant(state, clock())
            assert await claims_store.read_role(profile.auth_user_id) == AppRole.USER

    @pytest.mark.asyncio
    async def test_cascade_failure_rolls_back(
        self, store_service, session_factory, lifecycle, make_profile, membership_product, admin, clock
    ):
        """A failure midway through the cascade should leave everything untouched."""
        subscribers = [await make_profile() for _ in range(3)]
        for profile in subscribers:
            await store_service.purchase(profile.id, membership_product.id)

        real_cancel = lifecycle.cancel
        calls = {"n": 0}

        async def flaky_cancel(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 3:
                raise RuntimeError("database went away")
            return await real_cancel(*args, **kwargs)

        with patch.object(lifecycle, "cancel", new=flaky_cancel):
            with pytest.raises(RuntimeError):
                await store_service.archive_product(membership_product.id, admin)

        assert (await store_service.get_product(membership_product.id)).id == membership_product.id
        for profile in subscribers:
            state = await profile_state(session_factory, profile.id)
            assert state["role"] == AppRole.MEMBER
            assert state["active_membership_purchases"] == 1
            assert_membership_invariant(state, clock())

    @pytest.mark.asyncio
    async def test_bounded_cascade_resumes(
        self, session_factory, lifecycle, claims, make_profile, membership_product, admin, clock
    ):
        """Large cascades are processed in batches until the product is archived."""
        service = StoreService(
            session_factory=session_factory,
            lifecycle=lifecycle,
            claims=claims,
            clock=clock,
            archive_batch_size=2,
        )
        subscribers = [await make_profile() for _ in range(3)]
        for profile in subscribers:
            await service.purchase(profile.id, membership_product.id)

        first = await service.archive_product(membership_product.id, admin)
        assert not first.archived
        assert first.downgraded_profiles == 2
        assert first.remaining_subscribers == 1
        # Still listed until the last batch archives it
        assert (await service.get_product(membership_product.id)).id == membership_product.id

        second = await service.archive_product(membership_product.id, admin)
        assert second.archived
        assert second.downgraded_profiles == 1
        assert second.remaining_subscribers == 0
        for profile in subscribers:
            assert (await profile_state(session_factory, profile.id))["role"] == AppRole.USER

    @pytest.mark.asyncio
    async def test_cascade_keeps_members_with_other_backing(
        self, store_service, session_factory, make_product, make_profile, membership_product,
        admin, clock,
    ):
        """A subscriber backed by another membership product stays a MEMBER."""
        other = await make_product(admin, ProductType.MEMBERSHIP, name="Family plan")
        profile = await make_profile()
        await store_service.purchase(profile.id, other.id)
        # Second backing purchase inserted directly; a second grant would conflict
        async with session_factory() as session, session.begin():
            await PurchaseRepository(session).create(profile.id, membership_product, 1, clock())

        result = await store_service.archive_product(membership_product.id, admin)

        assert result.archived
        assert result.cancelled_purchases == 1
        assert result.downgraded_profiles == 0
        state = await profile_state(session_factory, profile.id)
        assert state["role"] == AppRole.MEMBER
        assert_membership_invariant(state, clock())
