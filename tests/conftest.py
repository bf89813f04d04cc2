import os
from pathlib import Path

import pytest

_LAYER_MARKERS = ("domain", "application", "integration")


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="PROTEAN_ENV overlay used while running the suite",
    )


def pytest_sessionstart(session):
    """Initialize the POS domain once and keep its context active for the whole run.

    The suite always talks to the in-memory fake processor; tests that need
    Midtrans build the adapter themselves.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["PAYMENT_GATEWAY"] = "fake"

    from pos.domain import pos

    pos.init()
    pos.domain_context().push()


def pytest_collection_modifyitems(config, items):
    """Mark each test with the layer its directory belongs to."""
    for item in items:
        parts = Path(item.fspath).parts
        layer = next((name for name in _LAYER_MARKERS if name in parts), None)
        if layer is None:
            continue
        item.add_marker(getattr(pytest.mark, layer))
        if layer == "integration" and item.get_closest_marker("fast") is None:
            item.add_marker(pytest.mark.slow)


@pytest.fixture(autouse=True)
def reset_stores():
    """Empty every provider and the event store after each test."""
    yield

    from protean import current_domain

    for provider in current_domain.providers.values():
        provider._data_reset()
    current_domain.event_store.store._data_reset()
