"""Shared fixtures for FeedPage tests."""

import pytest
from loguru import logger as _logger

from feedpage.config import set_config

# Variables read through aliases; a value left in the shell would leak into defaults
_ALIASED_ENV = ("OPML_URL", "REFRESH_MINUTES", "N_ITEMS", "NAME", "PORT")


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Fresh global configuration for every test."""
    for name in _ALIASED_ENV:
        monkeypatch.delenv(name, raising=False)
    set_config(None)
    yield
    set_config(None)


@pytest.fixture(autouse=True)
def reset_log_handlers():
    """Drop handlers a test installed on captured streams."""
    yield
    _logger.remove()
