"""
Pytest configuration and fixtures for firemock
Deterministic time and configuration isolation between tests
"""

import os
from datetime import datetime, timezone

import pytest

from firemock.clock import FixedClock
from firemock.config import MockSettings, reset_settings

# Modules whose tests depend on virtual time and must stay isolated
SENSITIVE_MODULES = {
    'test_scheduler',
    'test_session',
    'test_clock',
}

SETTINGS_ENV_KEYS = [
    'FIREMOCK_CONFIG',
    'FIREMOCK_AUTO_FLUSH',
    'FIREMOCK_TOKEN_LIFETIME_SECONDS',
]

T0 = datetime(2023, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def pytest_collection_modifyitems(config, items):
    """Mark sensitive tests automatically based on module name"""
    for item in items:
        module_name = item.module.__name__
        if any(sensitive in module_name for sensitive in SENSITIVE_MODULES):
            item.add_marker(pytest.mark.sensitive)


@pytest.fixture(autouse=True)
def reset_settings_isolation():
    """
    Keep environment overrides and the cached settings from leaking between tests
    """
    original_env = {key: os.environ.get(key) for key in SETTINGS_ENV_KEYS}
    for key in SETTINGS_ENV_KEYS:
        os.environ.pop(key, None)
    reset_settings()

    yield

    for key, value in original_env.items():
        if value is None:
            os.environ.pop(key, None)
        else:
            os.environ[key] = value
    reset_settings()


@pytest.fixture
def fixed_clock() -> FixedClock:
    """Fixed clock starting at 2023-01-01 12:00:00 UTC"""
    return FixedClock(T0)


@pytest.fixture
def settings() -> MockSettings:
    """Default settings with manual flushing"""
    return MockSettings()
