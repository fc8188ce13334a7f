"""Shared fixtures for bundlelock tests."""

import logging

import pytest


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """Undo ``basicConfig(force=True)`` done by CLI invocations."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
