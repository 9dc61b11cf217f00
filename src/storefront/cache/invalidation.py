"""Best-effort cache invalidation after a committed checkout.

Invalidation runs on an executor and is never awaited by the checkout: a
cache outage may leave stale listings for a short while but cannot fail an
order that has already committed.
"""

from concurrent.futures import Future, ThreadPoolExecutor

from storefront.cache.store import CacheKeys, CacheStore
from storefront.domain import logger


class InlineExecutor:
    """Runs submitted work immediately; used by tests and the CLI."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as exc:
            future.set_exception(exc)
        return future


def default_executor():
    return ThreadPoolExecutor(max_workers=2, thread_name_prefix="cache-invalidation")


class CacheInvalidator:
    def __init__(self, cache: CacheStore, executor=None):
        self.cache = cache
        self.executor = executor or default_executor()

    def invalidate(self, pattern) -> Future:
        return self._dispatch("delete_pattern", pattern)

    def delete(self, key) -> Future:
        return self._dispatch("delete", key)

    def after_checkout(self, user_id):
        """Drop the user's cached order listings and cart."""
        return [
            self.invalidate(CacheKeys.orders_pattern(user_id)),
            self.delete(CacheKeys.cart(user_id)),
        ]

    def _dispatch(self, operation, key) -> Future:
        future = self.executor.submit(getattr(self.cache, operation), key)
        future.add_done_callback(lambda done: self._log_failure(done, operation, key))
        return future

    @staticmethod
    def _log_failure(future, operation, key):
        exc = future.exception()
        if exc is not None:
            logger.warning(
                "cache_invalidation_failed",
                operation=operation,
                key=key,
                error=str(exc),
                exc_info=exc,
            )
