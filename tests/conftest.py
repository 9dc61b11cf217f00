"""Session wiring for the storefront suite.

The storefront domain is initialised once under ``PROTEAN_ENV`` (``--env``,
default ``test``) and its context stays pushed for the whole run. Every test
starts from empty stores.
"""

import os

import pytest

# Test layers, named after the directory the test module lives in
LAYERS = ("domain", "application", "integration", "bdd")


def pytest_addoption(parser):
    parser.addoption("--env", default="test", help="PROTEAN_ENV whose domain.toml overlay the suite runs on")


def pytest_configure(config):
    os.environ["PROTEAN_ENV"] = config.getoption("--env")


def pytest_sessionstart(session):
    from storefront.domain import storefront

    storefront.init()
    storefront.domain_context().push()


def pytest_collection_modifyitems(config, items):
    for item in items:
        parts = item.path.relative_to(config.rootpath).parts
        layer = next((part for part in parts if part in LAYERS), None)
        if layer is None:
            continue
        item.add_marker(getattr(pytest.mark, layer))
        if layer == "integration" and item.get_closest_marker("fast") is None:
            item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def storefront_schema():
    from storefront.domain import storefront
    from storefront.utils.db import drop_db, setup_db

    setup_db(storefront)
    yield
    drop_db(storefront)


@pytest.fixture(autouse=True)
def empty_stores():
    yield

    from protean import current_domain

    for provider in current_domain.providers.values():
        provider._data_reset()
    current_domain.event_store.store._data_reset()
