"""Read-only stock pre-check run before an order is committed.

Passing this check does not reserve anything: stock can change before the
checkout transaction commits, where ``Product.withdraw`` checks again.
"""

from dataclasses import dataclass

from storefront.catalogue.product import Product
from storefront.shared.errors import InsufficientStock


@dataclass(frozen=True)
class StockRequest:
    product: Product
    quantity: int
    size: str | None = None
    color: str | None = None


class StockValidator:
    def validate(self, requests):
        """Raise ``InsufficientStock`` for the first request that cannot be met."""
        for request in requests:
            self._check(request)

    def _check(self, request: StockRequest):
        product = request.product
        if product.quantity < request.quantity:
            raise InsufficientStock(str(product.id), product.name, product.quantity, request.quantity)

        variant = product.find_variant(request.size, request.color)
        if variant is None:
            # Not every product tracks stock per variant
            return
        if variant.quantity < request.quantity:
            raise InsufficientStock(
                str(product.id),
                product.name,
                variant.quantity,
                request.quantity,
                size=request.size,
                color=request.color,
            )
