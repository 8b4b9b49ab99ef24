"""
Tests for authentication app.

This package contains test modules for:
- test_managers.py: UserManager tests
- test_services.py: UserDirectoryService tests
- test_views.py: API endpoint tests

Usage:
    pytest app/authentication/tests/
"""
