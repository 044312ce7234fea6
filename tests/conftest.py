"""
Pytest fixtures and test configuration for bidyard tests.
"""

import logging

import pytest


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Send bid event logs to a temp directory."""
    monkeypatch.setenv("BIDYARD_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture(autouse=True)
def clean_bidyard_logger():
    """Remove all handlers from the bidyard logger before/after each test."""
    logger = logging.getLogger("bidyard")
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    yield
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
