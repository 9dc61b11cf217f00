"""Order aggregate: the priced, immutable record of a completed checkout.

An Order is created exactly once per successful checkout by
``Order.place()``. Its pricing, items and address snapshots never change
afterwards; later lifecycle work (fulfilment, payment capture, returns) only
moves ``status`` and ``payment_status``.

Status values:
    PENDING → PROCESSING → SHIPPED → DELIVERED → RECEIVED
    DELIVERED/RECEIVED → RETURN_REQUESTED
    PENDING/PROCESSING → CANCELLED
"""

import random
import string
from datetime import UTC, datetime
from enum import Enum

from protean.fields import (
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.order.events import OrderPlaced
from storefront.settings.store_settings import PaymentMethod
from storefront.shared.money import Money

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits
_ORDER_NUMBER_SUFFIX_LENGTH = 9


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    RECEIVED = "RECEIVED"
    RETURN_REQUESTED = "RETURN_REQUESTED"
    CANCELLED = "CANCELLED"


class PaymentStatus(Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


def idempotency_scope_for(user_id, key):
    """Idempotency keys are client-generated, so they are only unique per user."""
    return f"{user_id}:{key}" if key else None


def generate_order_number(now=None, rng=random):
    """``ORD-<epoch millis>-<9 random characters>``, e.g. ``ORD-1718000000000-K3J9X2QPL``."""
    now = now or datetime.now(UTC)
    millis = int(now.timestamp() * 1000)
    suffix = "".join(rng.choice(_ORDER_NUMBER_ALPHABET) for _ in range(_ORDER_NUMBER_SUFFIX_LENGTH))
    return f"ORD-{millis}-{suffix}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class AddressSnapshot:
    """A copy of a customer address taken at checkout.

    Kept by value on the order so that later edits to (or removal of) the
    source address do not rewrite where a past order was shipped.
    """

    address_id = String(max_length=50)
    full_name = String(required=True, max_length=255)
    phone = String(required=True, max_length=30)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(required=True, max_length=100)


@storefront.value_object(part_of="Order")
class OrderPricing:
    subtotal = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    tax = Float(default=0.0, min_value=0.0)
    total = Float(default=0.0, min_value=0.0)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    size = String(max_length=20)
    color = String(max_length=50)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    total = Float(required=True, min_value=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(required=True, max_length=50, unique=True)
    user_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(required=True, choices=PaymentMethod)
    pricing = ValueObject(OrderPricing)
    shipping_address = ValueObject(AddressSnapshot)
    billing_address = ValueObject(AddressSnapshot)
    items = HasMany(OrderItem)
    coupon_id = Identifier()
    coupon_code = String(max_length=50)
    notes = Text()
    idempotency_key = String(max_length=255)
    # "<user_id>:<key>"; empty when the checkout carried no key
    idempotency_scope = String(max_length=300, unique=True)
    created_at = DateTime()

    @classmethod
    def place(
        cls,
        order_number,
        user_id,
        cart_items,
        breakdown,
        payment_method,
        shipping_address,
        billing_address,
        coupon=None,
        notes=None,
        idempotency_key=None,
    ):
        """Create the order for a checked-out cart.

        Args:
            cart_items: The cart's ``CartItem`` lines; prices are the ones
                        captured when each line was added.
            breakdown: ``PriceBreakdown`` computed for this checkout.
            shipping_address / billing_address: ``Address.snapshot()`` dicts.
            coupon: The applied ``Coupon``, if any.
        """
        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            user_id=user_id,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=PaymentMethod(payment_method).value,
            pricing=OrderPricing(**breakdown.as_stored()),
            shipping_address=AddressSnapshot(**shipping_address),
            billing_address=AddressSnapshot(**billing_address),
            coupon_id=str(coupon.id) if coupon else None,
            coupon_code=coupon.code if coupon else None,
            notes=notes,
            idempotency_key=idempotency_key,
            idempotency_scope=idempotency_scope_for(user_id, idempotency_key),
            created_at=now,
        )

        for line in cart_items:
            price = Money.from_stored(line.unit_price)
            order.add_items(
                OrderItem(
                    product_id=str(line.product_id),
                    product_name=line.product_name,
                    size=line.size,
                    color=line.color,
                    price=price.to_stored(),
                    quantity=line.quantity,
                    total=(price * line.quantity).to_stored(),
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                item_count=len(order.items),
                subtotal=order.pricing.subtotal,
                discount=order.pricing.discount,
                shipping=order.pricing.shipping,
                tax=order.pricing.tax,
                total=order.pricing.total,
                payment_method=order.payment_method,
                coupon_id=order.coupon_id,
                placed_at=now,
            )
        )
        return order

    @property
    def total(self) -> Money:
        return Money.from_stored(self.pricing.total)
