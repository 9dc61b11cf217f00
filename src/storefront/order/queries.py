"""Read-side order queries for the customer's order history."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.order.order import Order

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def list_orders(user_id, page=1, limit=DEFAULT_PAGE_SIZE):
    """Return ``(orders, total)`` for one page of the user's orders, newest first."""
    page = max(int(page), 1)
    limit = min(max(int(limit), 1), MAX_PAGE_SIZE)

    results = (
        current_domain.repository_for(Order)
        ._dao.query.filter(user_id=str(user_id))
        .order_by("-created_at")
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return results.items, results.total


def get_order_for_user(user_id, order_id) -> Order:
    """Load one of the user's orders; other users' orders read as not found."""
    order = current_domain.repository_for(Order).get(order_id)
    if str(order.user_id) != str(user_id):
        raise ObjectNotFoundError(f"Order with id {order_id} does not exist")
    return order
