"""FastAPI routes for the storefront: orders, cart, coupons and settings."""

from math import ceil

from fastapi import APIRouter, Depends, Header, Query
from protean.utils.globals import current_domain

from storefront.api.dependencies import current_user_id, services
from storefront.api.schemas import (
    AddCartItemRequest,
    ApplyCouponRequest,
    CartItemIdResponse,
    CartResponse,
    CheckoutSettingsResponse,
    CouponPreviewResponse,
    OrderPageResponse,
    OrderResponse,
    PlaceOrderRequest,
    StatusResponse,
    UpdateCartItemRequest,
)
from storefront.cache.store import CacheKeys
from storefront.cart.cart import cart_for_user
from storefront.cart.items import AddToCart, ClearCart, RemoveCartItem, UpdateCartItem
from storefront.order.placement import PlaceOrder
from storefront.order.queries import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, get_order_for_user, list_orders
from storefront.shared.money import Money

ORDERS_CACHE_TTL = 30
CART_CACHE_TTL = 60

# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
async def place_order(
    body: PlaceOrderRequest,
    user_id: str = Depends(current_user_id),
    idempotency_key: str | None = Header(default=None),
    state=Depends(services),
) -> OrderResponse:
    command = PlaceOrder(
        user_id=user_id,
        shipping_address_id=body.shipping_address_id,
        billing_address_id=body.billing_address_id,
        payment_method=body.payment_method,
        notes=body.notes,
        coupon_id=body.coupon_id,
        idempotency_key=idempotency_key,
    )
    order = state.checkout_service.place_order(command)
    return OrderResponse.from_order(order)


@order_router.get("", response_model=OrderPageResponse)
async def get_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    user_id: str = Depends(current_user_id),
    state=Depends(services),
):
    key = CacheKeys.orders_page(user_id, page, limit)
    cached = state.cache.get(key)
    if cached is not None:
        return cached

    orders, total = list_orders(user_id, page=page, limit=limit)
    response = OrderPageResponse(
        orders=[OrderResponse.from_order(order) for order in orders],
        page=page,
        limit=limit,
        total=total,
        total_pages=ceil(total / limit) if total else 0,
    )
    state.cache.set(key, response.model_dump(by_alias=True), ORDERS_CACHE_TTL)
    return response


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, user_id: str = Depends(current_user_id)) -> OrderResponse:
    return OrderResponse.from_order(get_order_for_user(user_id, order_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(user_id: str = Depends(current_user_id), state=Depends(services)):
    key = CacheKeys.cart(user_id)
    cached = state.cache.get(key)
    if cached is not None:
        return cached

    response = CartResponse.from_cart(cart_for_user(user_id))
    state.cache.set(key, response.model_dump(by_alias=True), CART_CACHE_TTL)
    return response


@cart_router.post("/items", status_code=201, response_model=CartItemIdResponse)
async def add_cart_item(
    body: AddCartItemRequest,
    user_id: str = Depends(current_user_id),
    state=Depends(services),
) -> CartItemIdResponse:
    command = AddToCart(
        user_id=user_id,
        product_id=body.product_id,
        quantity=body.quantity,
        size=body.size,
        color=body.color,
    )
    item_id = current_domain.process(command, asynchronous=False)
    state.cache.delete(CacheKeys.cart(user_id))
    return CartItemIdResponse(item_id=item_id)


@cart_router.put("/items/{item_id}", response_model=StatusResponse)
async def update_cart_item(
    item_id: str,
    body: UpdateCartItemRequest,
    user_id: str = Depends(current_user_id),
    state=Depends(services),
) -> StatusResponse:
    command = UpdateCartItem(user_id=user_id, item_id=item_id, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    state.cache.delete(CacheKeys.cart(user_id))
    return StatusResponse()


@cart_router.delete("/items/{item_id}", response_model=StatusResponse)
async def remove_cart_item(
    item_id: str,
    user_id: str = Depends(current_user_id),
    state=Depends(services),
) -> StatusResponse:
    current_domain.process(RemoveCartItem(user_id=user_id, item_id=item_id), asynchronous=False)
    state.cache.delete(CacheKeys.cart(user_id))
    return StatusResponse()


@cart_router.delete("", response_model=StatusResponse)
async def clear_cart(user_id: str = Depends(current_user_id), state=Depends(services)) -> StatusResponse:
    current_domain.process(ClearCart(user_id=user_id), asynchronous=False)
    state.cache.delete(CacheKeys.cart(user_id))
    return StatusResponse()


# ---------------------------------------------------------------------------
# Coupon Router
# ---------------------------------------------------------------------------
coupon_router = APIRouter(prefix="/coupons", tags=["coupons"])


@coupon_router.post("/apply", response_model=CouponPreviewResponse)
async def apply_coupon(
    body: ApplyCouponRequest,
    user_id: str = Depends(current_user_id),  # noqa: ARG001
    state=Depends(services),
) -> CouponPreviewResponse:
    """Preview the discount a coupon code gives on a subtotal. Nothing is redeemed."""
    resolution = state.coupon_resolver.resolve_code(body.code, Money.of(body.subtotal))
    coupon = resolution.coupon
    return CouponPreviewResponse(
        coupon_id=str(coupon.id),
        code=coupon.code,
        discount_type=coupon.discount_type,
        discount=resolution.discount.to_stored(),
    )


# ---------------------------------------------------------------------------
# Settings Router
# ---------------------------------------------------------------------------
settings_router = APIRouter(prefix="/settings", tags=["settings"])


@settings_router.get("", response_model=CheckoutSettingsResponse)
async def get_checkout_settings(state=Depends(services)) -> CheckoutSettingsResponse:
    return CheckoutSettingsResponse.from_snapshot(state.settings_provider.get_settings())
