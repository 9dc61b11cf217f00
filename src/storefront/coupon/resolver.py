"""Coupon resolution: turn an optional coupon reference into a discount.

Resolution only reads. The usage counter moves in the checkout transaction
(``Coupon.redeem``), never here, so resolving twice gives the same answer.
"""

from dataclasses import dataclass
from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.coupon.coupon import Coupon, normalize_code
from storefront.shared.errors import CouponNotFound
from storefront.shared.money import Money


@dataclass(frozen=True)
class CouponResolution:
    discount: Money
    coupon: Coupon | None = None

    @property
    def applied(self):
        return self.coupon is not None


def _utcnow():
    return datetime.now(UTC)


class CouponResolver:
    def __init__(self, clock=_utcnow):
        self.clock = clock

    def resolve(self, coupon_id, subtotal: Money) -> CouponResolution:
        if not coupon_id:
            return CouponResolution(discount=Money.zero())

        try:
            coupon = current_domain.repository_for(Coupon).get(coupon_id)
        except ObjectNotFoundError:
            raise CouponNotFound(coupon_id) from None
        return self._apply(coupon, subtotal)

    def resolve_code(self, code, subtotal: Money) -> CouponResolution:
        normalized = normalize_code(code)
        results = current_domain.repository_for(Coupon)._dao.query.filter(code=normalized).all()
        if not results.items:
            raise CouponNotFound(normalized)
        return self._apply(results.first, subtotal)

    def _apply(self, coupon: Coupon, subtotal: Money) -> CouponResolution:
        coupon.check_eligibility(subtotal, self.clock())
        # Rounded to the currency unit once, here; rounding up must not push it past the subtotal
        discount = coupon.discount_for(subtotal).rounded().clamp(high=subtotal)
        return CouponResolution(discount=discount, coupon=coupon)
