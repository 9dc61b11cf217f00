"""Order pricing: subtotal, discount, shipping and tax into a total.

The steps run in a fixed order so the same inputs always give the same total:

    1. discounted = max(0, subtotal - discount)
    2. shipping   = 0 when a free-shipping threshold is set and discounted >= threshold,
                    otherwise the configured shipping fee
    3. tax        = discounted * tax_rate / 100
    4. total      = discounted + shipping + tax

Only the discount arrives rounded (see ``CouponResolver``); the other figures
keep full precision and are rounded for display only.
"""

from dataclasses import dataclass

from storefront.settings.store_settings import SettingsSnapshot
from storefront.shared.money import Money


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: Money
    discount: Money
    shipping: Money
    tax: Money
    total: Money

    @property
    def discounted_subtotal(self) -> Money:
        return (self.subtotal - self.discount).clamp(low=Money.zero())

    def as_stored(self):
        return {
            "subtotal": self.subtotal.to_stored(),
            "discount": self.discount.to_stored(),
            "shipping": self.shipping.to_stored(),
            "tax": self.tax.to_stored(),
            "total": self.total.to_stored(),
        }


class PricingCalculator:
    def compute(self, subtotal: Money, discount: Money, settings: SettingsSnapshot) -> PriceBreakdown:
        discounted = (subtotal - discount).clamp(low=Money.zero())

        threshold = settings.free_shipping_threshold
        if threshold is not None and discounted >= threshold:
            shipping = Money.zero()
        else:
            shipping = settings.shipping_fee

        tax = discounted.percent(settings.tax_rate)
        total = discounted + shipping + tax

        return PriceBreakdown(subtotal=subtotal, discount=discount, shipping=shipping, tax=tax, total=total)
