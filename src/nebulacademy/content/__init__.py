"""Bundled lesson content."""
