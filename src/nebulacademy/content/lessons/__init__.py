"""Lesson definitions, one JSON file per lesson."""
