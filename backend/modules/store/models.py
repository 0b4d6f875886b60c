"""
Store module data models.

Products, purchases, and the outcomes of the consistency-engine
operations. Outcomes of role-changing operations carry ``claims_warning``
so clients know to retry claims reconciliation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from shared.models import AppRole, ProductType
from modules.memberships.models import Membership


class Product(BaseModel):
    """A catalog item. ``deleted_at`` set means archived."""

    id: str = Field(..., description="Product ID (UUID)")
    name: str = Field(..., description="Display name")
    type: ProductType = Field(..., description="Product type")
    price: Decimal = Field(..., description="Current unit price")
    created_by: str = Field(..., description="Creator profile ID")
    created_at: datetime = Field(..., description="Creation time")
    deleted_at: Optional[datetime] = Field(None, description="Archive time")

    @property
    def is_archived(self) -> bool:
        return self.deleted_at is not None


class Purchase(BaseModel):
    """A profile's purchase of a product. ``deleted_at`` set means cancelled."""

    id: str = Field(..., description="Purchase ID (UUID)")
    profile_id: str = Field(..., description="Buyer profile ID")
    product_id: str = Field(..., description="Purchased product ID")
    quantity: int = Field(..., description="Units purchased")
    total: Decimal = Field(..., description="Price snapshot at purchase time")
    created_at: datetime = Field(..., description="Purchase time")
    deleted_at: Optional[datetime] = Field(None, description="Cancellation time")

    @property
    def is_active(self) -> bool:
        return self.deleted_at is None


class PurchaseDetail(Purchase):
    """A purchase with the product it references (archived or not)."""

    product: Product


class CreateProductRequest(BaseModel):
    """Request to create a catalog product."""

    name: str = Field(..., min_length=1, max_length=255, description="Display name")
    type: ProductType = Field(..., description="Product type")
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Unit price")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class PurchaseRequest(BaseModel):
    """Request body for purchasing a product."""

    quantity: int = Field(default=1, ge=1, le=1000, description="Units to purchase")


class ProductListResponse(BaseModel):
    """Catalog listing, newest first."""

    products: list[Product]
    total: int


class PurchaseListResponse(BaseModel):
    """Purchase history of the caller, newest first."""

    purchases: list[PurchaseDetail]
    total: int


class PurchaseOutcome(BaseModel):
    """Result of a completed purchase."""

    purchase: Purchase
    membership: Optional[Membership] = Field(None, description="Granted term (MEMBERSHIP only)")
    role: AppRole = Field(..., description="Buyer's role after the purchase")
    claims_warning: Optional[str] = None


class CancelPurchaseOutcome(BaseModel):
    """Result of cancelling a purchase."""

    purchase: Purchase
    membership: Optional[Membership] = Field(None, description="Membership after cancellation")
    role: AppRole = Field(..., description="Purchase owner's role after cancellation")
    claims_warning: Optional[str] = None


class ArchiveResult(BaseModel):
    """
    Result of an archive call.

    For MEMBERSHIP products the subscriber cascade is bounded per call.
    ``remaining_subscribers > 0`` means the product is not archived yet and
    the call should be repeated.
    """

    product: Product
    archived: bool = Field(..., description="Whether the product is now archived")
    cancelled_purchases: int = Field(default=0, description="Purchases cancelled by the cascade")
    downgraded_profiles: int = Field(default=0, description="Profiles downgraded to USER")
    remaining_subscribers: int = Field(default=0, description="Subscribers left for the next call")
    claims_warnings: list[str] = Field(
        default_factory=list,
        description="Identities whose claims could not be refreshed",
    )
