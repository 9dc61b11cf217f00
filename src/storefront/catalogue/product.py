"""Product aggregate with size/color variants.

Stock is tracked twice: ``Product.quantity`` is the aggregate count for the
product, and each ``ProductVariant`` may carry its own count. Selling a
variant consumes both. Neither counter may go negative.
"""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, HasMany, Integer, String, Text

from storefront.domain import storefront
from storefront.shared.errors import InsufficientStock
from storefront.shared.money import Money


@storefront.entity(part_of="Product")
class ProductVariant:
    """A size/color combination with its own price and stock."""

    size = String(required=True, max_length=20)
    color = String(required=True, max_length=50)
    price = Float(min_value=0.0)
    quantity = Integer(default=0)

    def matches(self, size, color):
        return self.size == size and self.color == color


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    slug = String(max_length=255)
    description = Text()
    price = Float(required=True, min_value=0.0)
    quantity = Integer(default=0)
    published = Boolean(default=True)
    variants = HasMany(ProductVariant)
    created_at = DateTime(default=lambda: datetime.now(UTC))

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.quantity is not None and self.quantity < 0:
            raise ValidationError({"quantity": ["Stock quantity cannot be negative"]})
        for variant in self.variants:
            if variant.quantity is not None and variant.quantity < 0:
                raise ValidationError({"variants": [f"Stock for {variant.size}/{variant.color} cannot be negative"]})

    @classmethod
    def create(cls, name, price, quantity=0, variants=None, description=None, published=True):
        product = cls(
            name=name,
            price=Money.of(price).to_stored(),
            quantity=quantity,
            description=description,
            published=published,
        )
        for variant in variants or []:
            product.add_variants(
                ProductVariant(
                    size=variant["size"],
                    color=variant["color"],
                    price=Money.of(variant.get("price", price)).to_stored(),
                    quantity=variant.get("quantity", 0),
                )
            )
        return product

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def find_variant(self, size, color) -> ProductVariant | None:
        """Return the variant for a size/color selection, or None.

        Both selectors are needed to identify a variant; a selection with only
        one of them is sold against the product's aggregate stock alone.
        """
        if size is None or color is None:
            return None
        return next((v for v in self.variants if v.matches(size, color)), None)

    def unit_price_for(self, size=None, color=None) -> Money:
        variant = self.find_variant(size, color)
        if variant is not None and variant.price is not None:
            return Money.from_stored(variant.price)
        return Money.from_stored(self.price)

    # -------------------------------------------------------------------
    # Stock
    # -------------------------------------------------------------------
    def withdraw(self, quantity, size=None, color=None):
        """Decrement stock for a sold line.

        The variant (when one matches the selection) is checked and decremented
        first, then the aggregate count. Raises ``InsufficientStock`` without
        touching either counter if the sale would take one below zero.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        variant = self.find_variant(size, color)
        if variant is not None and variant.quantity < quantity:
            raise InsufficientStock(str(self.id), self.name, variant.quantity, quantity, size=size, color=color)
        if self.quantity < quantity:
            raise InsufficientStock(str(self.id), self.name, self.quantity, quantity)

        if variant is not None:
            variant.quantity -= quantity
        self.quantity -= quantity
