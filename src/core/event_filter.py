"""
Selection of the registry notifications that should trigger a scan.
"""

from typing import Iterable

from constants import KNOWN_MANIFEST_MEDIA_TYPES, PUSH_ACTION
from core.models import RawNotification


def is_relevant(notification: RawNotification) -> bool:
    """Return True for pushes of a manifest or manifest list."""
    return (
        notification.action == PUSH_ACTION
        and notification.target.media_type in KNOWN_MANIFEST_MEDIA_TYPES
    )


def filter_events(notifications: Iterable[RawNotification]) -> list[RawNotification]:
    """
    Keep push notifications for known manifest media types.

    Pull, mount and delete actions as well as blob pushes are dropped.
    Order is preserved.

    Args:
        notifications: Raw notification records

    Returns:
        Relevant notifications in their original order
    """
    return [n for n in notifications if is_relevant(n)]


__all__ = ["filter_events", "is_relevant"]
