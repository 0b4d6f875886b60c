"""
Store API endpoints.

Catalog (products) and purchase endpoints. Domain errors propagate to the
application's exception handlers.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.middleware.auth import get_current_profile
from api.dependencies import get_store_service
from modules.profiles.models import Profile

from .interfaces import IStoreService
from .models import (
    ArchiveResult,
    CancelPurchaseOutcome,
    CreateProductRequest,
    Product,
    ProductListResponse,
    PurchaseListResponse,
    PurchaseOutcome,
    PurchaseRequest,
)

products_router = APIRouter()
purchases_router = APIRouter()


@products_router.get("", response_model=ProductListResponse)
async def list_products(
    include_archived: bool = Query(default=False, description="Include archived products"),
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> ProductListResponse:
    """
    List catalog products, newest first.

    APPLE products are only listed for members, staff and admins.
    """
    products = await service.list_products(profile, include_archived=include_archived)
    return ProductListResponse(products=products, total=len(products))


@products_router.post("", response_model=Product, status_code=201)
async def create_product(
    request: CreateProductRequest,
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> Product:
    """Create a product (ADMIN and STAFF; MEMBERSHIP products ADMIN only)."""
    return await service.create_product(profile, request)


@products_router.get("/{product_id}", response_model=Product)
async def get_product(
    product_id: str,
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> Product:
    """Get a non-archived product."""
    return await service.get_product(product_id)


@products_router.delete("/{product_id}", response_model=ArchiveResult)
async def archive_product(
    product_id: str,
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> ArchiveResult:
    """
    Archive a product.

    For MEMBERSHIP products with many subscribers the cascade is processed
    in batches: repeat the call while ``remaining_subscribers`` is non-zero.
    """
    return await service.archive_product(product_id, profile)


@products_router.post("/{product_id}/purchase", response_model=PurchaseOutcome, status_code=201)
async def purchase_product(
    product_id: str,
    request: Optional[PurchaseRequest] = None,
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> PurchaseOutcome:
    """Buy a product for the caller."""
    quantity = request.quantity if request else 1
    return await service.purchase(profile.id, product_id, quantity=quantity)


@purchases_router.get("", response_model=PurchaseListResponse)
async def list_purchases(
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> PurchaseListResponse:
    """List the caller's purchases, cancelled ones included."""
    purchases = await service.list_purchases(profile.id)
    return PurchaseListResponse(purchases=purchases, total=len(purchases))


@purchases_router.delete("/{purchase_id}", response_model=CancelPurchaseOutcome)
async def cancel_purchase(
    purchase_id: str,
    profile: Profile = Depends(get_current_profile),
    service: IStoreService = Depends(get_store_service),
) -> CancelPurchaseOutcome:
    """Cancel a purchase (own purchases, or any purchase for ADMIN)."""
    return await service.cancel_purchase(purchase_id, profile)
