"""Cart aggregate: one per user, created on the first add-to-cart.

Each line captures the unit price at the time it was added (the variant price
when a size/color variant is selected, otherwise the product price). Checkout
prices the order from these captured prices and empties the cart on success.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.shared.errors import CartItemNotFound, InsufficientStock, ProductUnavailable
from storefront.shared.money import Money, total_of

MAX_LINE_QUANTITY = 99


@storefront.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    size = String(max_length=20)
    color = String(max_length=50)
    quantity = Integer(required=True, min_value=1, max_value=MAX_LINE_QUANTITY)
    unit_price = Float(required=True, min_value=0.0)
    added_at = DateTime()

    def selects(self, product_id, size, color):
        return str(self.product_id) == str(product_id) and self.size == size and self.color == color

    @property
    def line_total(self) -> Money:
        return Money.from_stored(self.unit_price) * self.quantity


@storefront.aggregate
class Cart:
    user_id = Identifier(required=True)
    items = HasMany(CartItem)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, user_id):
        now = datetime.now(UTC)
        return cls(user_id=user_id, created_at=now, updated_at=now)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_empty(self):
        return not self.items

    @property
    def subtotal(self) -> Money:
        return total_of(item.line_total for item in self.items)

    @property
    def total_quantity(self):
        return sum(item.quantity for item in self.items)

    @property
    def contents(self):
        """The lines as comparable tuples, independent of load order."""
        return sorted(
            (str(item.id), str(item.product_id), item.size or "", item.color or "", item.quantity, item.unit_price)
            for item in self.items
        )

    def find_item(self, item_id) -> CartItem:
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise CartItemNotFound(item_id)
        return item

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product, quantity, size=None, color=None):
        """Add a product selection, merging with an existing line for the same selection."""
        if not product.published:
            raise ProductUnavailable(str(product.id))

        existing = next((i for i in self.items if i.selects(product.id, size, color)), None)
        new_quantity = quantity + (existing.quantity if existing else 0)
        if new_quantity > MAX_LINE_QUANTITY:
            raise ValidationError({"quantity": [f"Quantity cannot exceed {MAX_LINE_QUANTITY}"]})
        if product.quantity < new_quantity:
            raise InsufficientStock(str(product.id), product.name, product.quantity, new_quantity)

        now = datetime.now(UTC)
        if existing:
            existing.quantity = new_quantity
            item = existing
        else:
            item = CartItem(
                product_id=str(product.id),
                product_name=product.name,
                size=size,
                color=color,
                quantity=quantity,
                unit_price=product.unit_price_for(size, color).to_stored(),
                added_at=now,
            )
            self.add_items(item)

        self.updated_at = now
        return item

    def update_item_quantity(self, item_id, new_quantity, available=None):
        item = self.find_item(item_id)
        if new_quantity < 1 or new_quantity > MAX_LINE_QUANTITY:
            raise ValidationError({"quantity": [f"Quantity must be between 1 and {MAX_LINE_QUANTITY}"]})
        if available is not None and available < new_quantity:
            raise InsufficientStock(str(item.product_id), item.product_name, available, new_quantity)

        item.quantity = new_quantity
        self.updated_at = datetime.now(UTC)

    def remove_item(self, item_id):
        item = self.find_item(item_id)
        self.remove_items(item)
        self.updated_at = datetime.now(UTC)

    def clear(self):
        for item in list(self.items):
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)


def cart_for_user(user_id) -> Cart | None:
    results = current_domain.repository_for(Cart)._dao.query.filter(user_id=str(user_id)).all()
    return results.first
