"""Storefront HTTP API package."""

from storefront.api.app import create_app

__all__ = ["create_app"]
