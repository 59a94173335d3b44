"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any import that might build settings.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402

from ratewindow.adapters.rate_limit.in_memory import SlidingWindowStore  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Deterministic UNIX clock; tests move time via ``clock.return_value``."""
    return Mock(return_value=1000.0)


@pytest.fixture
def store(clock: Mock):
    """Store without a background compactor, shut down after the test."""
    instance = SlidingWindowStore(clock=clock, start_compactor=False)
    yield instance
    instance.shutdown()
