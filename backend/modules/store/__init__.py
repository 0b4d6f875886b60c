"""
Store module.

Catalog and purchases, and the consistency rules between purchases,
archived products and membership state.

Public API:
- IStoreService: Interface for catalog and purchase operations
- Product, Purchase, PurchaseDetail, CreateProductRequest: Models
- PurchaseOutcome, CancelPurchaseOutcome, ArchiveResult: Operation results
- Store exceptions
"""

from .interfaces import IStoreService
from .models import (
    Product,
    Purchase,
    PurchaseDetail,
    CreateProductRequest,
    PurchaseOutcome,
    CancelPurchaseOutcome,
    ArchiveResult,
)
from .exceptions import (
    ProductNotFoundError,
    PurchaseNotFoundError,
    PurchaseAlreadyCancelledError,
    ProductHasActivePurchasesError,
    InvalidQuantityError,
)

__all__ = [
    # Interface
    "IStoreService",
    # Models
    "Product",
    "Purchase",
    "PurchaseDetail",
    "CreateProductRequest",
    "PurchaseOutcome",
    "CancelPurchaseOutcome",
    "ArchiveResult",
    # Exceptions
    "ProductNotFoundError",
    "PurchaseNotFoundError",
    "PurchaseAlreadyCancelledError",
    "ProductHasActivePurchasesError",
    "InvalidQuantityError",
]
