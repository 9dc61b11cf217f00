"""Pydantic request/response schemas for the storefront API.

These are the external contracts. Field names are camelCase on the wire and
snake_case in Python; Protean commands stay internal.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class PlaceOrderRequest(ApiModel):
    shipping_address_id: str
    billing_address_id: str | None = None
    payment_method: str
    notes: str | None = None
    coupon_id: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "shippingAddressId": "addr-001",
                    "paymentMethod": "COD",
                    "notes": "Leave at the front desk",
                    "couponId": None,
                }
            ]
        },
    )


class AddressSnapshotSchema(ApiModel):
    address_id: str | None = None
    full_name: str
    phone: str
    street: str
    city: str
    state: str | None = None
    postal_code: str | None = None
    country: str


class OrderItemResponse(ApiModel):
    id: str
    product_id: str
    product_name: str | None = None
    size: str | None = None
    color: str | None = None
    price: float
    quantity: int
    total: float


class OrderResponse(ApiModel):
    id: str
    order_number: str
    user_id: str
    status: str
    payment_status: str
    payment_method: str
    subtotal: float
    discount: float
    shipping: float
    tax: float
    total: float
    coupon_id: str | None = None
    coupon_code: str | None = None
    notes: str | None = None
    shipping_address: AddressSnapshotSchema
    billing_address: AddressSnapshotSchema
    items: list[OrderItemResponse]
    created_at: str | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            user_id=str(order.user_id),
            status=order.status,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            subtotal=order.pricing.subtotal,
            discount=order.pricing.discount,
            shipping=order.pricing.shipping,
            tax=order.pricing.tax,
            total=order.pricing.total,
            coupon_id=str(order.coupon_id) if order.coupon_id else None,
            coupon_code=order.coupon_code,
            notes=order.notes,
            shipping_address=AddressSnapshotSchema(**order.shipping_address.to_dict()),
            billing_address=AddressSnapshotSchema(**order.billing_address.to_dict()),
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    product_name=item.product_name,
                    size=item.size,
                    color=item.color,
                    price=item.price,
                    quantity=item.quantity,
                    total=item.total,
                )
                for item in order.items
            ],
            created_at=order.created_at.isoformat() if order.created_at else None,
        )


class OrderPageResponse(ApiModel):
    orders: list[OrderResponse]
    page: int
    limit: int
    total: int
    total_pages: int


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(ApiModel):
    product_id: str
    quantity: int = Field(default=1, ge=1)
    size: str | None = None
    color: str | None = None


class UpdateCartItemRequest(ApiModel):
    quantity: int


class CartItemResponse(ApiModel):
    id: str
    product_id: str
    product_name: str | None = None
    size: str | None = None
    color: str | None = None
    quantity: int
    unit_price: float
    line_total: float


class CartResponse(ApiModel):
    items: list[CartItemResponse] = []
    subtotal: float = 0.0
    total_quantity: int = 0

    @classmethod
    def from_cart(cls, cart) -> "CartResponse":
        if cart is None:
            return cls()
        return cls(
            items=[
                CartItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    product_name=item.product_name,
                    size=item.size,
                    color=item.color,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total.to_stored(),
                )
                for item in cart.items
            ],
            subtotal=cart.subtotal.to_stored(),
            total_quantity=cart.total_quantity,
        )


class CartItemIdResponse(ApiModel):
    item_id: str


# ---------------------------------------------------------------------------
# Coupons and settings
# ---------------------------------------------------------------------------
class ApplyCouponRequest(ApiModel):
    code: str = Field(min_length=1)
    subtotal: float = Field(ge=0)


class CouponPreviewResponse(ApiModel):
    coupon_id: str
    code: str
    discount_type: str
    discount: float


class CheckoutSettingsResponse(ApiModel):
    store_name: str
    currency: str
    shipping_fee: float
    free_shipping_threshold: float | None = None
    tax_rate: float
    payment_methods: list[str]

    @classmethod
    def from_snapshot(cls, snapshot) -> "CheckoutSettingsResponse":
        threshold = snapshot.free_shipping_threshold
        return cls(
            store_name=snapshot.store_name,
            currency=snapshot.currency,
            shipping_fee=snapshot.shipping_fee.to_stored(),
            free_shipping_threshold=threshold.to_stored() if threshold is not None else None,
            tax_rate=float(snapshot.tax_rate),
            payment_methods=[method.value for method in snapshot.enabled_payment_methods()],
        )


class StatusResponse(ApiModel):
    status: str = "ok"
