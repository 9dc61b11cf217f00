"""Shared BDD fixtures and step definitions for storefront checkout."""

from decimal import Decimal

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from storefront.cache.invalidation import CacheInvalidator, InlineExecutor
from storefront.cache.store import MemoryCache
from storefront.cart.cart import cart_for_user
from storefront.catalogue.product import Product
from storefront.order.order import Order
from storefront.order.placement import CheckoutService
from storefront.settings.store_settings import SettingsSnapshot, StaticSettingsProvider
from storefront.shared.money import Money


@pytest.fixture()
def world():
    """Scenario state: products by name, coupons by code, the placed order and any error."""
    return {"products": {}, "coupons": {}, "order": None, "error": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("the store charges {fee:d} shipping with {rate:d} percent tax"),
    target_fixture="checkout_service",
)
def _(fee, rate):
    snapshot = SettingsSnapshot(
        shipping_fee=Money.of(fee),
        tax_rate=Decimal(rate),
        free_shipping_threshold=Money.of(1_000_000),
    )
    return CheckoutService(
        settings_provider=StaticSettingsProvider(snapshot),
        cache_invalidator=CacheInvalidator(MemoryCache(), executor=InlineExecutor()),
    )


@given(parsers.cfparse('a product "{name}" priced {price:d} with {quantity:d} in stock'))
def _(seed, world, name, price, quantity):
    world["products"][name] = seed.product(name=name, price=price, quantity=quantity)


@given("the customer has a saved address", target_fixture="address")
def _(seed):
    return seed.address(user_id="user-001")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the checkout fails with "{code}"'))
def _(world, code):
    assert world["error"] is not None
    assert world["error"].code == code


@then("no order is placed")
def _():
    assert current_domain.repository_for(Order)._dao.query.all().items == []


@then(parsers.cfparse('"{name}" has {quantity:d} in stock'))
def _(world, name, quantity):
    product = current_domain.repository_for(Product).get(world["products"][name].id)
    assert product.quantity == quantity


@then("the customer's cart is empty")
def _():
    assert cart_for_user("user-001").is_empty
