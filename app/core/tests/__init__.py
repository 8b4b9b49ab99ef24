"""Tests for the core service layer and infrastructure views."""
