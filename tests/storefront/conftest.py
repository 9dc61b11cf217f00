from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from storefront.cache.invalidation import CacheInvalidator, InlineExecutor
from storefront.cache.store import MemoryCache
from storefront.cart.cart import Cart, cart_for_user
from storefront.catalogue.product import Product
from storefront.coupon.coupon import Coupon
from storefront.customer.address import Address
from storefront.order.placement import CheckoutService, PlaceOrder
from storefront.settings.store_settings import SettingsSnapshot, StaticSettingsProvider
from storefront.shared.money import Money


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------
class Seed:
    """Persists aggregates for tests, with defaults matching a small apparel store."""

    def product(self, name="Linen Shirt", price=250_000, quantity=10, variants=None, published=True):
        product = Product.create(name=name, price=price, quantity=quantity, variants=variants, published=published)
        current_domain.repository_for(Product).add(product)
        return product

    def address(self, user_id="user-001", **overrides):
        data = {
            "user_id": user_id,
            "full_name": "Nguyen Van An",
            "phone": "0901234567",
            "street": "12 Le Loi",
            "city": "Ho Chi Minh City",
            "state": "District 1",
            "postal_code": "700000",
            "country": "VN",
        }
        data.update(overrides)
        address = Address(**data)
        current_domain.repository_for(Address).add(address)
        return address

    def coupon(self, code="SAVE10", discount_type="PERCENTAGE", value=10, **options):
        now = datetime.now(UTC)
        options.setdefault("valid_from", now - timedelta(days=1))
        options.setdefault("valid_until", now + timedelta(days=30))
        coupon = Coupon.create(code=code, discount_type=discount_type, value=value, **options)
        current_domain.repository_for(Coupon).add(coupon)
        return coupon

    def cart(self, user_id="user-001", lines=()):
        """Persist a cart holding ``(product, quantity[, size, color])`` lines."""
        cart = cart_for_user(user_id) or Cart.create(user_id=user_id)
        for line in lines:
            product, quantity, *selection = line
            size, color = (selection + [None, None])[:2]
            cart.add_item(product, quantity, size=size, color=color)
        current_domain.repository_for(Cart).add(cart)
        return cart


@pytest.fixture
def seed():
    return Seed()


# ---------------------------------------------------------------------------
# Checkout collaborators
# ---------------------------------------------------------------------------
@pytest.fixture
def settings_snapshot():
    return SettingsSnapshot(
        shipping_fee=Money.of(30_000),
        tax_rate=Money.of(10).amount,
        free_shipping_threshold=Money.of(1_000_000),
        payment_cod_enabled=True,
        payment_bank_transfer_enabled=True,
        payment_credit_card_enabled=False,
    )


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
def checkout(settings_snapshot, cache):
    return CheckoutService(
        settings_provider=StaticSettingsProvider(settings_snapshot),
        cache_invalidator=CacheInvalidator(cache, executor=InlineExecutor()),
    )


@pytest.fixture
def place_order_command():
    def _command(address, **overrides):
        data = {
            "user_id": str(address.user_id),
            "shipping_address_id": str(address.id),
            "payment_method": "COD",
        }
        data.update(overrides)
        return PlaceOrder(**data)

    return _command
