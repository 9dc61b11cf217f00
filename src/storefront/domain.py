"""Storefront bounded context: catalogue stock, carts, coupons, settings and orders.

Every aggregate the checkout touches lives in this one domain (and its one
database provider) so that order placement commits as a single UnitOfWork.
"""

import logging

from protean.domain import Domain

from storefront.utils.logging import configure_logging, get_logger

configure_logging()

# Suppress noisy library loggers
logging.getLogger("protean").setLevel(logging.WARNING)

logger = get_logger(__name__)

# Domain Composition Root
storefront = Domain(name="storefront")
