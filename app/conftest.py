"""
Root pytest configuration for the Django project.

This module tunes settings for the test run and auto-marks tests.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Disable throttling during tests to prevent rate limit failures
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_CLASSES"] = []
    settings.REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {}

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_directory.py, test_messages.py, etc. -> integration
    - test_permissions.py, test_typing.py, test_sync.py, etc. -> unit
    - Unmatched files -> integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_directory.py",
        "test_messages.py",
        "test_read_tracking.py",
        "test_search.py",
        "test_attachments.py",
    ]

    unit_patterns = [
        "test_permissions.py",
        "test_typing.py",
        "test_sync.py",
        "test_managers.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if filename in integration_patterns:
            item.add_marker(pytest.mark.integration)
        elif filename in unit_patterns:
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
