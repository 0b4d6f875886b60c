"""
Store module exceptions.

These exceptions are raised by the store module and can be caught
by API error handlers to return appropriate HTTP responses.
"""

from shared.exceptions import ConflictError, NotFoundError, ValidationError
from shared.models import ProductType


class ProductNotFoundError(NotFoundError):
    """Raised when a product doesn't exist or is archived."""

    def __init__(self, product_id: str):
        super().__init__(
            "Product not found",
            code="PRODUCT_NOT_FOUND",
            details={"product_id": product_id},
        )


class PurchaseNotFoundError(NotFoundError):
    """Raised when a purchase doesn't exist."""

    def __init__(self, purchase_id: str):
        super().__init__(
            "Purchase not found",
            code="PURCHASE_NOT_FOUND",
            details={"purchase_id": purchase_id},
        )


class PurchaseAlreadyCancelledError(ConflictError):
    """Raised when cancelling a purchase that is already cancelled."""

    def __init__(self, purchase_id: str):
        super().__init__(
            "Purchase already cancelled",
            code="PURCHASE_ALREADY_CANCELLED",
            details={"purchase_id": purchase_id},
        )


class ProductHasActivePurchasesError(ConflictError):
    """Raised when archiving a non-membership product that still has buyers."""

    def __init__(self, product_id: str, product_type: ProductType, active_purchases: int):
        super().__init__(
            f"Cannot delete this {product_type.value.lower()} because it has active purchases. "
            "Users must cancel their purchases first.",
            code="PRODUCT_HAS_ACTIVE_PURCHASES",
            details={
                "product_id": product_id,
                "product_type": product_type.value,
                "active_purchases": active_purchases,
            },
        )


class InvalidQuantityError(ValidationError):
    """Raised when a purchase quantity is not allowed for the product."""

    def __init__(self, product_type: ProductType, quantity: int):
        super().__init__(
            f"Quantity {quantity} is not allowed for {product_type.value} products",
            code="INVALID_QUANTITY",
            details={"product_type": product_type.value, "quantity": quantity},
        )
