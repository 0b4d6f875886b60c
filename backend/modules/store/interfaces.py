"""
Store module interface.

Other modules should depend on IStoreService, not the concrete implementation.
"""

from typing import Protocol, runtime_checkable

from modules.profiles.models import Profile

from .models import (
    ArchiveResult,
    CancelPurchaseOutcome,
    CreateProductRequest,
    Product,
    PurchaseDetail,
    PurchaseOutcome,
)


@runtime_checkable
class IStoreService(Protocol):
    """
    Interface for catalog and purchase operations.

    Every mutation applies its multi-row effects in one transaction and
    publishes role changes to the claims store only after commit.
    """

    async def create_product(self, caller: Profile, request: CreateProductRequest) -> Product:
        """
        Create a catalog product owned by the caller.

        Raises:
            PermissionDeniedError: If the caller may not create this product type
        """
        ...

    async def list_products(self, caller: Profile, include_archived: bool = False) -> list[Product]:
        """
        List catalog products, newest first.

        APPLE products are listed only for callers with member access.

        Raises:
            PermissionDeniedError: If archived products are requested without
                admin area access
        """
        ...

    async def get_product(self, product_id: str) -> Product:
        """
        Get a non-archived product.

        Raises:
            ProductNotFoundError: If the product is absent or archived
        """
        ...

    async def purchase(self, profile_id: str, product_id: str, quantity: int = 1) -> PurchaseOutcome:
        """
        Buy a product. Buying a MEMBERSHIP product grants a membership term.

        Raises:
            ProductNotFoundError: If the product is absent or archived
            PermissionDeniedError: If an APPLE product is bought without member access
            MembershipAlreadyActiveError: If a MEMBERSHIP product is bought
                while the membership is active
        """
        ...

    async def cancel_purchase(self, purchase_id: str, caller: Profile) -> CancelPurchaseOutcome:
        """
        Soft-delete a purchase. Cancelling a MEMBERSHIP purchase ends the
        membership unless another membership purchase backs it.

        Raises:
            PurchaseNotFoundError: If the purchase doesn't exist
            PermissionDeniedError: If the caller neither owns the purchase
                nor may cancel any purchase
            PurchaseAlreadyCancelledError: If the purchase is already cancelled
        """
        ...

    async def archive_product(self, product_id: str, caller: Profile) -> ArchiveResult:
        """
        Archive (soft-delete) a product.

        Non-MEMBERSHIP products with active purchases are refused.
        MEMBERSHIP products cascade: subscribers' purchases are cancelled,
        memberships ended and roles downgraded, then the product archived.

        Raises:
            ProductNotFoundError: If the product is absent or already archived
            PermissionDeniedError: If the caller may not archive this product
            ProductHasActivePurchasesError: If a non-MEMBERSHIP product has
                active purchases
        """
        ...

    async def list_purchases(self, profile_id: str) -> list[PurchaseDetail]:
        """Purchase history of a profile, newest first, cancelled rows included."""
        ...
