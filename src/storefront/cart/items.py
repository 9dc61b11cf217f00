"""Cart item management: commands and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import Cart, cart_for_user
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.shared.errors import CartItemNotFound, ProductUnavailable


@storefront.command(part_of="Cart")
class AddToCart:
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    size = String(max_length=20)
    color = String(max_length=50)


@storefront.command(part_of="Cart")
class UpdateCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@storefront.command(part_of="Cart")
class RemoveCartItem:
    user_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.command(part_of="Cart")
class ClearCart:
    user_id = Identifier(required=True)


def _load_product(product_id) -> Product:
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError:
        raise ProductUnavailable(product_id) from None


@storefront.command_handler(part_of=Cart)
class CartCommandHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        product = _load_product(command.product_id)

        repo = current_domain.repository_for(Cart)
        cart = cart_for_user(command.user_id) or Cart.create(user_id=command.user_id)
        item = cart.add_item(product, command.quantity, size=command.size, color=command.color)
        repo.add(cart)
        return str(item.id)

    @handle(UpdateCartItem)
    def update_item(self, command):
        cart = cart_for_user(command.user_id)
        if cart is None:
            raise CartItemNotFound(command.item_id)

        item = cart.find_item(command.item_id)
        product = _load_product(item.product_id)
        cart.update_item_quantity(command.item_id, command.quantity, available=product.quantity)
        current_domain.repository_for(Cart).add(cart)

    @handle(RemoveCartItem)
    def remove_item(self, command):
        cart = cart_for_user(command.user_id)
        if cart is None:
            raise CartItemNotFound(command.item_id)

        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for_user(command.user_id)
        if cart is None:
            return

        cart.clear()
        current_domain.repository_for(Cart).add(cart)
