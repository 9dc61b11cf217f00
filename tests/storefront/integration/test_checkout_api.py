"""Integration tests for the storefront API via TestClient."""

import pytest
from fastapi.testclient import TestClient
from protean import current_domain

import storefront.order.placement as placement
from storefront.api.app import create_app
from storefront.cache.invalidation import InlineExecutor
from storefront.cache.store import CacheKeys
from storefront.cart.cart import cart_for_user
from storefront.catalogue.product import Product
from storefront.order.order import Order
from storefront.settings.store_settings import StaticSettingsProvider

USER = {"X-User-Id": "user-001"}


@pytest.fixture()
def client(settings_snapshot, cache):
    app = create_app(
        settings_provider=StaticSettingsProvider(settings_snapshot),
        cache=cache,
        executor=InlineExecutor(),
    )
    return TestClient(app)


def _checkout_body(address, **overrides):
    body = {"shippingAddressId": str(address.id), "paymentMethod": "COD"}
    body.update(overrides)
    return body


class TestAuthentication:
    def test_missing_user_is_unauthorized(self, client):
        response = client.post("/orders", json={"shippingAddressId": "a", "paymentMethod": "COD"})
        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "code": "UNAUTHORIZED",
            "error": "Authentication required",
            "details": {},
        }

    def test_cart_requires_user(self, client):
        assert client.get("/cart").status_code == 401


class TestPlaceOrderEndpoint:
    def test_created(self, client, seed):
        product = seed.product(price=250_000, quantity=10)
        address = seed.address()
        seed.cart(lines=[(product, 2)])

        response = client.post("/orders", json=_checkout_body(address, notes="Call first"), headers=USER)

        assert response.status_code == 201
        body = response.json()
        assert body["orderNumber"].startswith("ORD-")
        assert body["status"] == "PENDING"
        assert body["paymentStatus"] == "PENDING"
        assert body["subtotal"] == 500_000
        assert body["shipping"] == 30_000
        assert body["tax"] == 50_000
        assert body["total"] == 580_000
        assert body["notes"] == "Call first"
        assert body["items"][0]["quantity"] == 2
        assert body["shippingAddress"]["fullName"] == "Nguyen Van An"

        assert current_domain.repository_for(Product).get(product.id).quantity == 8
        assert cart_for_user("user-001").is_empty

    def test_with_coupon(self, client, seed):
        product = seed.product(price=250_000)
        address = seed.address()
        coupon = seed.coupon(value=10, max_discount_amount=40_000)
        seed.cart(lines=[(product, 2)])

        response = client.post("/orders", json=_checkout_body(address, couponId=str(coupon.id)), headers=USER)

        assert response.status_code == 201
        assert response.json()["discount"] == 40_000
        assert response.json()["total"] == 536_000

    def test_empty_cart(self, client, seed):
        address = seed.address()
        response = client.post("/orders", json=_checkout_body(address), headers=USER)

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert response.json()["code"] == "EMPTY_CART"

    def test_insufficient_stock(self, client, seed):
        product = seed.product(quantity=5)
        address = seed.address()
        seed.cart(lines=[(product, 5)])
        stored = current_domain.repository_for(Product).get(product.id)
        stored.quantity = 2
        current_domain.repository_for(Product).add(stored)

        response = client.post("/orders", json=_checkout_body(address), headers=USER)

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["details"]["available"] == 2
        assert body["details"]["requested"] == 5

    def test_foreign_address(self, client, seed):
        seed.cart(lines=[(seed.product(), 1)])
        foreign = seed.address(user_id="user-999")

        response = client.post("/orders", json=_checkout_body(foreign), headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == "ADDRESS_NOT_FOUND"

    def test_disabled_payment_method(self, client, seed):
        address = seed.address()
        seed.cart(lines=[(seed.product(), 1)])

        response = client.post("/orders", json=_checkout_body(address, paymentMethod="CREDIT_CARD"), headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == "PAYMENT_METHOD_DISABLED"

    def test_unknown_payment_method(self, client, seed):
        address = seed.address()
        response = client.post("/orders", json=_checkout_body(address, paymentMethod="BARTER"), headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_missing_shipping_address(self, client):
        response = client.post("/orders", json={"paymentMethod": "COD"}, headers=USER)
        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert "shippingAddressId" in body["details"]

    def test_idempotency_key_replays(self, client, seed):
        address = seed.address()
        seed.cart(lines=[(seed.product(), 1)])
        headers = {**USER, "Idempotency-Key": "checkout-abc"}

        first = client.post("/orders", json=_checkout_body(address), headers=headers)
        second = client.post("/orders", json=_checkout_body(address), headers=headers)

        assert first.status_code == 201
        assert second.status_code == 201
        assert first.json()["id"] == second.json()["id"]
        assert len(current_domain.repository_for(Order)._dao.query.all().items) == 1

    def test_transaction_failure_is_500(self, client, seed, monkeypatch):
        address = seed.address()
        seed.cart(lines=[(seed.product(), 1)])
        existing = seed.address(user_id="user-002")
        seed.cart(user_id="user-002", lines=[(seed.product(), 1)])
        taken = client.post("/orders", json=_checkout_body(existing), headers={"X-User-Id": "user-002"})
        monkeypatch.setattr(
            placement,
            "generate_order_number",
            lambda now=None: taken.json()["orderNumber"],
        )

        response = client.post("/orders", json=_checkout_body(address), headers=USER)

        assert response.status_code == 500
        assert response.json()["code"] == "TRANSACTION_FAILURE"


class TestOrderQueries:
    def test_list_orders_is_cached_and_invalidated(self, client, seed, cache):
        address = seed.address()
        seed.cart(lines=[(seed.product(), 1)])
        client.post("/orders", json=_checkout_body(address), headers=USER)

        response = client.get("/orders?page=1&limit=10", headers=USER)
        assert response.status_code == 200
        assert response.json()["total"] == 1
        assert response.json()["totalPages"] == 1
        assert cache.get(CacheKeys.orders_page("user-001", 1, 10)) is not None

        seed.cart(lines=[(seed.product(name="Second"), 1)])
        client.post("/orders", json=_checkout_body(address), headers=USER)

        assert cache.get(CacheKeys.orders_page("user-001", 1, 10)) is None
        assert client.get("/orders?page=1&limit=10", headers=USER).json()["total"] == 2

    def test_get_order(self, client, seed):
        address = seed.address()
        seed.cart(lines=[(seed.product(), 1)])
        order_id = client.post("/orders", json=_checkout_body(address), headers=USER).json()["id"]

        assert client.get(f"/orders/{order_id}", headers=USER).status_code == 200
        response = client.get(f"/orders/{order_id}", headers={"X-User-Id": "user-002"})
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"


class TestCartEndpoints:
    def test_cart_lifecycle(self, client, seed):
        product = seed.product(price=250_000, quantity=10)

        response = client.post("/cart/items", json={"productId": str(product.id), "quantity": 2}, headers=USER)
        assert response.status_code == 201
        item_id = response.json()["itemId"]

        cart = client.get("/cart", headers=USER).json()
        assert cart["subtotal"] == 500_000
        assert cart["items"][0]["lineTotal"] == 500_000

        assert client.put(f"/cart/items/{item_id}", json={"quantity": 3}, headers=USER).status_code == 200
        assert client.get("/cart", headers=USER).json()["totalQuantity"] == 3

        assert client.delete(f"/cart/items/{item_id}", headers=USER).status_code == 200
        assert client.get("/cart", headers=USER).json()["items"] == []

    def test_empty_cart_view(self, client):
        assert client.get("/cart", headers=USER).json() == {"items": [], "subtotal": 0.0, "totalQuantity": 0}

    def test_clear_cart(self, client, seed):
        client.post("/cart/items", json={"productId": str(seed.product().id)}, headers=USER)
        assert client.delete("/cart", headers=USER).status_code == 200
        assert cart_for_user("user-001").is_empty

    def test_unknown_product(self, client):
        response = client.post("/cart/items", json={"productId": "missing"}, headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == "PRODUCT_UNAVAILABLE"

    def test_unknown_item(self, client, seed):
        client.post("/cart/items", json={"productId": str(seed.product().id)}, headers=USER)
        response = client.put("/cart/items/nope", json={"quantity": 2}, headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == "CART_ITEM_NOT_FOUND"


class TestCouponsAndSettings:
    def test_coupon_preview(self, client, seed):
        coupon = seed.coupon(code="SAVE10", value=10, max_discount_amount=40_000)
        response = client.post("/coupons/apply", json={"code": "save10", "subtotal": 500_000}, headers=USER)

        assert response.status_code == 200
        assert response.json() == {
            "couponId": str(coupon.id),
            "code": "SAVE10",
            "discountType": "PERCENTAGE",
            "discount": 40_000,
        }

    def test_coupon_minimum(self, client, seed):
        seed.coupon(code="BIG", min_order_amount=1_000_000)
        response = client.post("/coupons/apply", json={"code": "BIG", "subtotal": 500_000}, headers=USER)
        assert response.status_code == 400
        assert response.json()["code"] == "COUPON_MINIMUM_NOT_MET"
        assert response.json()["details"]["required"] == "1000000"

    def test_settings(self, client):
        body = client.get("/settings").json()
        assert body["shippingFee"] == 30_000
        assert body["taxRate"] == 10
        assert body["freeShippingThreshold"] == 1_000_000
        assert body["paymentMethods"] == ["COD", "BANK_TRANSFER"]

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok", "domain": "storefront"}
