"""Utility modules shared across the application."""

from utils.logging_helpers import format_event_context

__all__ = [
    "format_event_context",
]
