"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING environment variable so no .env file is loaded, and
provides helpers for building requests and apps with a fake counter store.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"
os.environ.setdefault("LOG_FORMAT", "plain")
os.environ.setdefault("STORE_BACKEND", "memory")

from unittest.mock import Mock

import pytest
from starlette.requests import Request

from request_throttling.adapters.counter_store import InMemoryCounterStore
from request_throttling.core.config import LogSettings, Settings, StoreSettings, ThrottleSettings


def make_request(client_ip: str | None = "10.0.0.1", headers: dict[str, str] | None = None) -> Request:
    """Build a bare Starlette request carrying only identifying attributes."""
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [
            (name.lower().encode(), value.encode()) for name, value in (headers or {}).items()
        ],
        "client": (client_ip, 50000) if client_ip is not None else None,
    }
    return Request(scope)


def make_settings(**throttle_overrides) -> Settings:
    """Build settings with an in-memory store and the given throttle limits."""
    return Settings(
        throttle=ThrottleSettings(**throttle_overrides),
        store=StoreSettings(backend="memory"),
        log=LogSettings(format="plain"),
    )


@pytest.fixture
def clock() -> Mock:
    return Mock(return_value=1000.0)


@pytest.fixture
def memory_store(clock: Mock) -> InMemoryCounterStore:
    return InMemoryCounterStore(clock=clock)


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def settings_factory():
    return make_settings
