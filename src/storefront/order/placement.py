"""Order placement: turns a user's cart into a committed Order.

Checkout runs in two phases:

1. Pre-checks, read-only: payment method, cart, addresses, stock, coupon and
   pricing. A failure here raises a ``CheckoutError`` and nothing is written.
2. The atomic phase, inside ``checkout_transaction()``: coupon redemption,
   order insert, stock withdrawal and cart clearing commit together or not at
   all. Stock and coupon usage are checked again here against freshly loaded
   aggregates, since both may have moved since the pre-checks, and the cart
   must still hold the lines that were priced.

Cache invalidation is dispatched only after the commit and never fails the
checkout.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, cart_for_user
from storefront.catalogue.product import Product
from storefront.catalogue.stock import StockRequest, StockValidator
from storefront.coupon.coupon import Coupon
from storefront.coupon.resolver import CouponResolution, CouponResolver
from storefront.customer.address import Address, find_owned_address
from storefront.domain import logger, storefront
from storefront.order.order import Order, generate_order_number, idempotency_scope_for
from storefront.order.pricing import PriceBreakdown, PricingCalculator
from storefront.settings.store_settings import PaymentMethod
from storefront.shared.errors import (
    CartChanged,
    CheckoutError,
    CouponNotFound,
    EmptyCart,
    InsufficientStock,
    PaymentMethodDisabled,
    TransactionFailure,
)
from storefront.utils.logging import add_context, remove_context


@storefront.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    shipping_address_id = Identifier(required=True)
    billing_address_id = Identifier()
    payment_method = String(required=True, choices=PaymentMethod)
    notes = Text()
    coupon_id = Identifier()
    idempotency_key = String(max_length=255)


def find_order_by_idempotency_key(user_id, key) -> Order | None:
    scope = idempotency_scope_for(user_id, key)
    if scope is None:
        return None
    return current_domain.repository_for(Order)._dao.query.filter(idempotency_scope=scope).all().first


# A lost write race is retried once; the retry sees the winner's writes
MAX_COMMIT_ATTEMPTS = 2


@dataclass(frozen=True)
class _PricedCheckout:
    """What the pre-checks established, carried into the atomic phase."""

    command: PlaceOrder
    cart: Cart
    resolution: CouponResolution
    breakdown: PriceBreakdown
    shipping_address: Address
    billing_address: Address


# ---------------------------------------------------------------------------
# Atomic phase
# ---------------------------------------------------------------------------
class CheckoutTransaction:
    """Handle for the reads and writes of one checkout's atomic phase.

    Aggregates are loaded once per transaction, so two cart lines for the same
    product withdraw from the same in-memory ``Product``.
    """

    def __init__(self, uow):
        self.uow = uow
        self._products = {}
        self._coupons = {}
        self._dirty = {}

    def product(self, product_id) -> Product | None:
        key = str(product_id)
        if key not in self._products:
            try:
                self._products[key] = current_domain.repository_for(Product).get(key)
            except ObjectNotFoundError:
                self._products[key] = None
        return self._products[key]

    def coupon(self, coupon_id) -> Coupon:
        key = str(coupon_id)
        if key not in self._coupons:
            try:
                self._coupons[key] = current_domain.repository_for(Coupon).get(key)
            except ObjectNotFoundError:
                raise CouponNotFound(key) from None
        return self._coupons[key]

    def cart(self, cart_id) -> Cart:
        return current_domain.repository_for(Cart).get(cart_id)

    def order_number_taken(self, order_number) -> bool:
        results = current_domain.repository_for(Order)._dao.query.filter(order_number=order_number).all()
        return bool(results.items)

    def idempotency_key_taken(self, user_id, key) -> bool:
        return key is not None and find_order_by_idempotency_key(user_id, key) is not None

    def mark(self, aggregate):
        """Queue a loaded aggregate to be written back before commit."""
        self._dirty[(type(aggregate).__name__, str(aggregate.id))] = aggregate

    def add(self, aggregate):
        current_domain.repository_for(type(aggregate)).add(aggregate)

    def flush(self):
        for aggregate in self._dirty.values():
            self.add(aggregate)
        self._dirty.clear()


@contextmanager
def checkout_transaction():
    """Run a block as one all-or-nothing unit of work.

    Business-rule failures (``CheckoutError``) and optimistic-concurrency
    conflicts (``ExpectedVersionError``) propagate unchanged after the rollback.
    Anything else is logged and re-raised as ``TransactionFailure``.
    """
    try:
        with UnitOfWork() as uow:
            transaction = CheckoutTransaction(uow)
            yield transaction
            transaction.flush()
    except (CheckoutError, ExpectedVersionError):
        raise
    except Exception as exc:
        logger.error("checkout_transaction_failed", error=str(exc), error_type=type(exc).__name__, exc_info=True)
        raise TransactionFailure(error_type=type(exc).__name__) from exc


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
def _utcnow():
    return datetime.now(UTC)


class CheckoutService:
    """Places orders from carts.

    Collaborators are injected so that settings, cache and clock can be
    substituted without a live backend.

    A checkout that loses a write race to another one (a version conflict on
    a product, coupon or cart) runs its atomic phase again on fresh aggregates.
    The second run reports the business outcome: ``InsufficientStock``,
    ``CouponExhausted`` or ``CartChanged``, or an order when stock and coupon
    uses still suffice.
    """

    def __init__(
        self,
        settings_provider,
        cache_invalidator,
        stock_validator=None,
        coupon_resolver=None,
        pricing=None,
        clock=_utcnow,
    ):
        self.settings_provider = settings_provider
        self.cache_invalidator = cache_invalidator
        self.stock_validator = stock_validator or StockValidator()
        self.coupon_resolver = coupon_resolver or CouponResolver(clock=clock)
        self.pricing = pricing or PricingCalculator()
        self.clock = clock

    def place_order(self, command: PlaceOrder) -> Order:
        add_context(user_id=str(command.user_id))
        try:
            existing = find_order_by_idempotency_key(command.user_id, command.idempotency_key)
            if existing is not None:
                logger.info("checkout_replayed", order_number=existing.order_number)
                return existing

            order = self._place(command)
        finally:
            remove_context("user_id", "order_number")

        self._invalidate_caches(command.user_id)
        return order

    def _place(self, command):
        # Settings are read once and used for this checkout only
        settings = self.settings_provider.get_settings()
        if not settings.is_payment_enabled(command.payment_method):
            raise PaymentMethodDisabled(command.payment_method)

        cart = cart_for_user(command.user_id)
        if cart is None or cart.is_empty:
            raise EmptyCart()

        shipping_address = find_owned_address(command.user_id, command.shipping_address_id, kind="shipping")
        if command.billing_address_id and str(command.billing_address_id) != str(command.shipping_address_id):
            billing_address = find_owned_address(command.user_id, command.billing_address_id, kind="billing")
        else:
            billing_address = shipping_address

        self.stock_validator.validate(self._stock_requests(cart))

        subtotal = cart.subtotal
        resolution = self.coupon_resolver.resolve(command.coupon_id, subtotal)
        breakdown = self.pricing.compute(subtotal, resolution.discount, settings)

        logger.info(
            "checkout_prechecks_passed",
            cart_id=str(cart.id),
            line_count=len(cart.items),
            subtotal=str(breakdown.subtotal),
            discount=str(breakdown.discount),
            total=str(breakdown.total),
        )

        checkout = _PricedCheckout(command, cart, resolution, breakdown, shipping_address, billing_address)
        for attempt in range(1, MAX_COMMIT_ATTEMPTS + 1):
            try:
                order = self._commit(checkout)
                break
            except ExpectedVersionError as exc:
                if attempt == MAX_COMMIT_ATTEMPTS:
                    logger.error("checkout_conflict_unresolved", attempts=attempt, error=str(exc))
                    raise TransactionFailure(error_type=type(exc).__name__) from exc
                logger.info("checkout_conflict_retrying", attempt=attempt, error=str(exc))

        logger.info("order_placed", order_id=str(order.id), total=str(breakdown.total))
        return order

    def _commit(self, checkout):
        command = checkout.command
        with checkout_transaction() as tx:
            # Lines are ordered from the cart as it stands inside the
            # transaction, and must be the lines that were priced
            live_cart = tx.cart(checkout.cart.id)
            if live_cart.is_empty:
                raise EmptyCart()
            if live_cart.contents != checkout.cart.contents:
                raise CartChanged()

            order_number = generate_order_number(self.clock())
            add_context(order_number=order_number)
            if tx.order_number_taken(order_number):
                raise RuntimeError(f"Order number {order_number} already exists")
            if tx.idempotency_key_taken(command.user_id, command.idempotency_key):
                raise RuntimeError("A checkout with this idempotency key already committed")

            coupon = None
            if checkout.resolution.applied:
                coupon = tx.coupon(checkout.resolution.coupon.id)
                coupon.redeem()
                tx.mark(coupon)

            order = Order.place(
                order_number=order_number,
                user_id=command.user_id,
                cart_items=live_cart.items,
                breakdown=checkout.breakdown,
                payment_method=command.payment_method,
                shipping_address=checkout.shipping_address.snapshot(),
                billing_address=checkout.billing_address.snapshot(),
                coupon=coupon,
                notes=command.notes,
                idempotency_key=command.idempotency_key,
            )
            tx.add(order)

            for line in live_cart.items:
                product = tx.product(line.product_id)
                if product is None:
                    raise InsufficientStock(str(line.product_id), line.product_name, 0, line.quantity)
                product.withdraw(line.quantity, size=line.size, color=line.color)
                tx.mark(product)

            live_cart.clear()
            tx.mark(live_cart)

        return order

    def _stock_requests(self, cart):
        requests = []
        for line in cart.items:
            try:
                product = current_domain.repository_for(Product).get(line.product_id)
            except ObjectNotFoundError:
                raise InsufficientStock(str(line.product_id), line.product_name, 0, line.quantity) from None
            requests.append(StockRequest(product, line.quantity, size=line.size, color=line.color))
        return requests

    def _invalidate_caches(self, user_id):
        try:
            self.cache_invalidator.after_checkout(user_id)
        except Exception as exc:
            logger.warning("cache_invalidation_dispatch_failed", user_id=str(user_id), error=str(exc))
