"""Coupon aggregate: discount codes with a validity window and a usage cap."""

from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Integer, String, Text

from storefront.domain import storefront
from storefront.shared.errors import (
    CouponDisabled,
    CouponExhausted,
    CouponExpired,
    CouponMinimumNotMet,
)
from storefront.shared.money import Money


class DiscountType(Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


def normalize_code(code):
    return code.strip().upper()


def _aware(moment):
    # Some providers hand datetimes back without tzinfo; they are stored as UTC.
    if moment is not None and moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


@storefront.aggregate
class Coupon:
    code = String(required=True, max_length=50, unique=True)
    description = Text()
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    min_order_amount = Float(min_value=0.0)
    max_discount_amount = Float(min_value=0.0)
    active = Boolean(default=True)
    valid_from = DateTime(required=True)
    valid_until = DateTime(required=True)
    usage_limit = Integer(min_value=0)
    used_count = Integer(default=0)

    @invariant.post
    def usage_cannot_exceed_limit(self):
        if self.usage_limit is not None and self.used_count > self.usage_limit:
            raise ValidationError({"used_count": ["Coupon usage cannot exceed its limit"]})

    @invariant.post
    def percentage_cannot_exceed_hundred(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.value > 100:
            raise ValidationError({"value": ["Percentage discounts cannot exceed 100"]})

    @classmethod
    def create(cls, code, discount_type, value, valid_from, valid_until, **options):
        return cls(
            code=normalize_code(code),
            discount_type=DiscountType(discount_type).value,
            value=value,
            valid_from=valid_from,
            valid_until=valid_until,
            **options,
        )

    # -------------------------------------------------------------------
    # Eligibility
    # -------------------------------------------------------------------
    @property
    def has_uses_left(self):
        return self.usage_limit is None or self.used_count < self.usage_limit

    def check_eligibility(self, subtotal: Money, at: datetime):
        """Apply the eligibility rules in order, raising on the first that fails."""
        if not self.active:
            raise CouponDisabled(self.code)

        if at < _aware(self.valid_from):
            raise CouponExpired(self.code, not_yet_valid=True)
        if at > _aware(self.valid_until):
            raise CouponExpired(self.code)

        if not self.has_uses_left:
            raise CouponExhausted(self.code, usage_limit=self.usage_limit)

        if self.min_order_amount:
            required = Money.from_stored(self.min_order_amount)
            if subtotal < required:
                raise CouponMinimumNotMet(self.code, required)

    def discount_for(self, subtotal: Money) -> Money:
        """Discount this coupon grants on ``subtotal``; never negative, never above it."""
        value = Money.from_stored(self.value)

        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = subtotal.percent(value.amount)
            if self.max_discount_amount:
                discount = discount.clamp(high=Money.from_stored(self.max_discount_amount))
        else:
            discount = value

        return discount.clamp(low=Money.zero(), high=subtotal)

    # -------------------------------------------------------------------
    # Redemption
    # -------------------------------------------------------------------
    def redeem(self):
        """Consume one use. Called only inside the checkout transaction."""
        if not self.has_uses_left:
            raise CouponExhausted(self.code, usage_limit=self.usage_limit)
        self.used_count = (self.used_count or 0) + 1
