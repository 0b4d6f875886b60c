"""Tests for product and purchase endpoints and the error mapping."""

from datetime import datetime, timezone
from decimal import Decimal

from shared.models import AppRole, ProductType
from modules.memberships import Membership, MembershipAlreadyActiveError
from modules.permissions import PermissionDeniedError
from modules.store import (
    ArchiveResult,
    CancelPurchaseOutcome,
    InvalidQuantityError,
    Product,
    ProductHasActivePurchasesError,
    ProductNotFoundError,
    Purchase,
    PurchaseOutcome,
)

from tests.api.conftest import make_api_profile

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


def _product(product_type: ProductType = ProductType.ORANGE, **overrides) -> Product:
    values = dict(
        id="product-1",
        name="Navel",
        type=product_type,
        price=Decimal("9.99"),
        created_by="profile-9",
        created_at=NOW,
    )
    values.update(overrides)
    return Product(**values)


def _purchase(**overrides) -> Purchase:
    values = dict(
        id="purchase-1",
        profile_id="profile-1",
        product_id="product-1",
        quantity=1,
        total=Decimal("9.99"),
        created_at=NOW,
    )
    values.update(overrides)
    return Purchase(**values)


class TestProducts:
    def test_list_products(self, client, auth_headers, store_service):
        store_service.list_products.return_value = [_product()]

        response = client.get("/api/products", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["products"][0]["price"] == "9.99"
        _, kwargs = store_service.list_products.await_args
        assert kwargs == {"include_archived": False}

    def test_create_product(self, client, auth_headers, store_service):
        store_service.create_product.return_value = _product()

        response = client.post(
            "/api/products",
            json={"name": "Navel", "type": "ORANGE", "price": "9.99"},
            headers=auth_headers,
        )

        assert response.status_code == 201
        request = store_service.create_product.await_args.args[1]
        assert request.type == ProductType.ORANGE

    def test_create_product_blank_name(self, client, auth_headers, store_service):
        """Request validation happens before the service is called."""
        response = client.post(
            "/api/products",
            json={"name": "   ", "type": "ORANGE", "price": "1"},
            headers=auth_headers,
        )
        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"
        store_service.create_product.assert_not_awaited()

    def test_create_forbidden(self, client, auth_headers, store_service):
        """PermissionDeniedError maps to 403 with the error body."""
        store_service.create_product.side_effect = PermissionDeniedError(
            permission="products:create", role="USER", reason="Your role cannot create products"
        )

        response = client.post(
            "/api/products",
            json={"name": "Navel", "type": "ORANGE", "price": "1"},
            headers=auth_headers,
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": "PERMISSION_DENIED",
            "message": "Your role cannot create products",
            "details": {"permission": "products:create", "role": "USER"},
        }

    def test_get_missing_product(self, client, auth_headers, store_service):
        store_service.get_product.side_effect = ProductNotFoundError("nope")
        response = client.get("/api/products/nope", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "PRODUCT_NOT_FOUND"

    def test_archive_conflict(self, client, auth_headers, store_service):
        store_service.archive_product.side_effect = ProductHasActivePurchasesError(
            "product-1", ProductType.ORANGE, 2
        )
        response = client.delete("/api/products/product-1", headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["details"]["active_purchases"] == 2

    def test_archive_partial_cascade(self, client, auth_headers, store_service):
        store_service.archive_product.return_value = ArchiveResult(
            product=_product(ProductType.MEMBERSHIP),
            archived=False,
            cancelled_purchases=200,
            downgraded_profiles=200,
            remaining_subscribers=15,
        )
        response = client.delete("/api/products/product-1", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["remaining_subscribers"] == 15
        assert response.json()["archived"] is False


class TestPurchases:
    def test_purchase_defaults_to_quantity_one(self, client, auth_headers, store_service):
        store_service.purchase.return_value = PurchaseOutcome(purchase=_purchase(), role=AppRole.USER)

        response = client.post("/api/products/product-1/purchase", headers=auth_headers)

        assert response.status_code == 201
        store_service.purchase.assert_awaited_once_with("profile-1", "product-1", quantity=1)

    def test_purchase_with_quantity(self, client, auth_headers, store_service):
        store_service.purchase.return_value = PurchaseOutcome(
            purchase=_purchase(quantity=3, total=Decimal("29.97")), role=AppRole.USER
        )
        response = client.post(
            "/api/products/product-1/purchase", json={"quantity": 3}, headers=auth_headers
        )
        assert response.status_code == 201
        store_service.purchase.assert_awaited_once_with("profile-1", "product-1", quantity=3)

    def test_purchase_membership(self, client, auth_headers, store_service):
        store_service.purchase.return_value = PurchaseOutcome(
            purchase=_purchase(),
            membership=Membership(id="m-1", profile_id="profile-1", start_date=NOW, end_date=NOW),
            role=AppRole.MEMBER,
            claims_warning="Refresh your session to see the change.",
        )
        response = client.post("/api/products/product-1/purchase", headers=auth_headers)
        data = response.json()
        assert data["role"] == "MEMBER"
        assert data["claims_warning"] is not None

    def test_purchase_while_member_conflicts(self, client, auth_headers, store_service):
        store_service.purchase.side_effect = MembershipAlreadyActiveError("profile-1")
        response = client.post("/api/products/product-1/purchase", headers=auth_headers)
        assert response.status_code == 409

    def test_invalid_quantity(self, client, auth_headers, store_service):
        store_service.purchase.side_effect = InvalidQuantityError(ProductType.MEMBERSHIP, 2)
        response = client.post(
            "/api/products/product-1/purchase", json={"quantity": 2}, headers=auth_headers
        )
        assert response.status_code == 422
        assert response.json()["error"] == "INVALID_QUANTITY"

    def test_cancel_purchase(self, client, auth_headers, store_service):
        store_service.cancel_purchase.return_value = CancelPurchaseOutcome(
            purchase=_purchase(deleted_at=NOW), role=AppRole.USER
        )
        response = client.delete("/api/purchases/purchase-1", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["purchase"]["deleted_at"] is not None
        caller = store_service.cancel_purchase.await_args.args[1]
        assert caller == make_api_profile()

    def test_list_purchases(self, client, auth_headers, store_service):
        store_service.list_purchases.return_value = []
        response = client.get("/api/purchases", headers=auth_headers)
        assert response.json() == {"purchases": [], "total": 0}


class TestUnhandledErrors:
    def test_unexpected_error_is_generic_500(self, client, auth_headers, store_service):
        """Unexpected failures should not leak internals."""
        store_service.list_purchases.side_effect = RuntimeError("connection string with password")
        response = client.get("/api/purchases", headers=auth_headers)
        assert response.status_code == 500
        assert response.json()["message"] == "An unexpected error occurred"
