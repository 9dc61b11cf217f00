"""Checkout error taxonomy.

Business-rule failures are ``ValidationError`` subclasses, so Protean treats
them like any other domain rejection (a UnitOfWork in progress rolls back) and
the API reports them as HTTP 400. Each carries a stable ``code`` for clients.
"""

from protean.exceptions import ValidationError


class CheckoutError(ValidationError):
    code = "CHECKOUT_ERROR"
    field = "checkout"

    def __init__(self, message, **details):
        self.message = message
        self.details = {key: value for key, value in details.items() if value is not None}
        super().__init__({self.field: [message]})

    def __str__(self):
        return self.message


class EmptyCart(CheckoutError):
    code = "EMPTY_CART"
    field = "cart"

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


class AddressNotFound(CheckoutError):
    code = "ADDRESS_NOT_FOUND"
    field = "address"

    def __init__(self, address_id, kind="shipping"):
        super().__init__(f"{kind.capitalize()} address not found", address_id=address_id, kind=kind)


class PaymentMethodDisabled(CheckoutError):
    code = "PAYMENT_METHOD_DISABLED"
    field = "payment_method"

    def __init__(self, payment_method):
        super().__init__(
            f"Payment method {payment_method} is not currently available",
            payment_method=payment_method,
        )


class CouponNotFound(CheckoutError):
    code = "COUPON_NOT_FOUND"
    field = "coupon"

    def __init__(self, reference):
        super().__init__("Coupon does not exist", coupon=reference)


class CouponDisabled(CheckoutError):
    code = "COUPON_DISABLED"
    field = "coupon"

    def __init__(self, code):
        super().__init__(f"Coupon {code} has been disabled", coupon=code)


class CouponExpired(CheckoutError):
    code = "COUPON_EXPIRED"
    field = "coupon"

    def __init__(self, code, not_yet_valid=False):
        message = f"Coupon {code} is not valid yet" if not_yet_valid else f"Coupon {code} has expired"
        super().__init__(message, coupon=code)


class CouponExhausted(CheckoutError):
    code = "COUPON_EXHAUSTED"
    field = "coupon"

    def __init__(self, code, usage_limit=None):
        super().__init__(f"Coupon {code} has no uses left", coupon=code, usage_limit=usage_limit)


class CouponMinimumNotMet(CheckoutError):
    code = "COUPON_MINIMUM_NOT_MET"
    field = "coupon"

    def __init__(self, code, required):
        self.required = required
        super().__init__(
            f"Orders must reach {required} to use coupon {code}",
            coupon=code,
            required=str(required),
        )


class InsufficientStock(CheckoutError):
    code = "INSUFFICIENT_STOCK"
    field = "stock"

    def __init__(self, product_id, product_name, available, requested, size=None, color=None):
        self.available = available
        self.requested = requested
        label = product_name or product_id
        if size is not None and color is not None:
            label = f"{label} ({size}/{color})"
        super().__init__(
            f"Insufficient stock for {label}. Only {available} available.",
            product_id=product_id,
            available=available,
            requested=requested,
            size=size,
            color=color,
        )


class ProductUnavailable(CheckoutError):
    code = "PRODUCT_UNAVAILABLE"
    field = "product"

    def __init__(self, product_id):
        super().__init__("Product not found or not available", product_id=product_id)


class CartItemNotFound(CheckoutError):
    code = "CART_ITEM_NOT_FOUND"
    field = "item_id"

    def __init__(self, item_id):
        super().__init__("Item not found in cart", item_id=item_id)


class TransactionFailure(Exception):
    """An unexpected persistence failure inside the atomic phase of checkout."""

    code = "TRANSACTION_FAILURE"

    def __init__(self, message="Failed to create order", **details):
        self.message = message
        self.details = details
        super().__init__(message)


class CartChanged(CheckoutError):
    code = "CART_CHANGED"
    field = "cart"

    def __init__(self, message="Cart changed during checkout, please review it and try again"):
        super().__init__(message)
