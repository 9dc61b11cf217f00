"""Storefront FastAPI application.

Checkout and cart requests are processed synchronously within the storefront
domain context, pushed per request by a middleware.

Usage:
    uvicorn storefront.api.app:build_app --factory --host 0.0.0.0 --port 8000
"""

import os

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from storefront.api.dependencies import Unauthorized
from storefront.cache.invalidation import CacheInvalidator
from storefront.cache.store import MemoryCache, RedisCache
from storefront.coupon.resolver import CouponResolver
from storefront.domain import logger, storefront
from storefront.order.placement import CheckoutService
from storefront.settings.store_settings import RepositorySettingsProvider
from storefront.shared.errors import CheckoutError, TransactionFailure


def _error(status_code, code, message, details=None):
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "code": code, "error": message, "details": details or {}},
    )


def register_error_handlers(app: FastAPI):
    @app.exception_handler(CheckoutError)
    async def checkout_error_handler(request: Request, exc: CheckoutError):
        return _error(400, exc.code, exc.message, exc.details)

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return _error(400, "VALIDATION_ERROR", "Invalid request", exc.messages)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        fields = {}
        for error in exc.errors():
            location = ".".join(str(part) for part in error["loc"] if part != "body")
            fields.setdefault(location, []).append(error["msg"])
        return _error(400, "VALIDATION_ERROR", "Invalid request", fields)

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(request: Request, exc: Unauthorized):
        return _error(401, exc.code, exc.message)

    @app.exception_handler(ObjectNotFoundError)
    async def not_found_handler(request: Request, exc: ObjectNotFoundError):
        return _error(404, "NOT_FOUND", str(exc) or "Resource not found")

    @app.exception_handler(TransactionFailure)
    async def transaction_failure_handler(request: Request, exc: TransactionFailure):
        return _error(500, exc.code, exc.message)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error("unhandled_request_error", path=request.url.path, error=str(exc), exc_info=exc)
        return _error(500, "INTERNAL_ERROR", "Internal server error")


def _default_cache():
    url = os.environ.get("REDIS_URL")
    if url:
        return RedisCache(url)
    return MemoryCache()


def create_app(settings_provider=None, cache=None, executor=None) -> FastAPI:
    """Build the API with its collaborators.

    Args:
        settings_provider: Defaults to the repository-backed provider sharing ``cache``.
        cache: A ``CacheStore``; Redis when ``REDIS_URL`` is set, otherwise in-process.
        executor: Runs cache invalidation after checkout; a small thread pool by default.
    """
    cache = cache if cache is not None else _default_cache()
    settings_provider = settings_provider or RepositorySettingsProvider(cache=cache)

    app = FastAPI(
        title="Storefront API",
        description="Carts, coupons and checkout for the apparel storefront",
    )
    app.state.cache = cache
    app.state.settings_provider = settings_provider
    app.state.coupon_resolver = CouponResolver()
    app.state.checkout_service = CheckoutService(
        settings_provider=settings_provider,
        cache_invalidator=CacheInvalidator(cache, executor=executor),
        coupon_resolver=app.state.coupon_resolver,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the storefront domain context for each request."""
        with storefront.domain_context():
            response = await call_next(request)
        return response

    register_error_handlers(app)

    from storefront.api.routes import cart_router, coupon_router, order_router, settings_router

    app.include_router(order_router)
    app.include_router(cart_router)
    app.include_router(coupon_router)
    app.include_router(settings_router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": storefront.name})

    return app


def build_app() -> FastAPI:
    """Initialize the domain and build the app with default collaborators."""
    storefront.init()
    return create_app()
