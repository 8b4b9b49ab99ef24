"""
Tests for chat app.

This package contains test modules for:
- test_directory.py: Chat creation, group management, favorites, chat list/info
- test_messages.py: Send, edit, delete and history paging
- test_read_tracking.py: Read cursors and unread counts
- test_typing.py: TypingTracker and TypingService
- test_permissions.py: Pure permission functions
- test_search.py: Message search
- test_attachments.py: Descriptor validation, upload and listing
- test_sync.py: Poll snapshot and client-side reconciler
- test_views.py: REST API endpoint tests

Usage:
    pytest chat/tests/
    pytest chat/tests/test_typing.py
"""
