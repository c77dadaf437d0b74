"""
Conversion of registry notification envelopes into RegistryEvents.

The registry's notification envelope is untrusted input: every problem
with an individual record surfaces as MalformedEventError so callers can
log and skip the record without affecting the rest of the envelope.
"""

import logging
import re
from typing import Any
from urllib.parse import urlsplit

from core.event_filter import filter_events
from core.exceptions import MalformedEventError
from core.models import Platform, RawNotification, RegistryEvent

logger = logging.getLogger(__name__)

# algorithm:encoded as defined by the OCI image spec
DIGEST_PATTERN = re.compile(r"^[a-z0-9]+(?:[.+_-][a-z0-9]+)*:[a-zA-Z0-9=_-]+$")


def parse_envelope(payload: Any) -> list[RawNotification]:
    """
    Parse a decoded notification envelope into raw notification records.

    Args:
        payload: Decoded JSON body ({"events": [...]})

    Returns:
        Raw notification records in envelope order

    Raises:
        MalformedEventError: If the payload is not an envelope
    """
    if not isinstance(payload, dict):
        raise MalformedEventError("envelope must be a JSON object")
    events = payload.get("events")
    if events is None:
        return []
    if not isinstance(events, list):
        raise MalformedEventError("events must be a list", "events")
    return [RawNotification.from_dict(e) for e in events]


def registry_from_url(url: str) -> str:
    """
    Extract host[:port] from a notification target URL.

    Raises:
        MalformedEventError: If the URL cannot be parsed or has no authority
    """
    if not url:
        raise MalformedEventError("target URL is empty", "target.url")
    try:
        parts = urlsplit(url)
        # port parsing is lazy and raises on garbage such as "host:abc"
        parts.port
    except ValueError as e:
        raise MalformedEventError(f"invalid target URL {url!r}: {e}", "target.url") from e

    if not parts.scheme or not parts.netloc:
        raise MalformedEventError(f"target URL {url!r} has no host", "target.url")

    host = parts.netloc.rpartition("@")[2]
    if not host:
        raise MalformedEventError(f"target URL {url!r} has no host", "target.url")
    return host


def normalize_event(notification: RawNotification) -> RegistryEvent:
    """
    Convert one accepted notification into a RegistryEvent.

    Args:
        notification: Notification that passed the event filter

    Returns:
        Canonical RegistryEvent

    Raises:
        MalformedEventError: If the record cannot describe an artifact
    """
    target = notification.target
    registry = registry_from_url(target.url)

    if not target.repository:
        raise MalformedEventError("repository is empty", "target.repository")
    if not target.tag and not target.digest:
        raise MalformedEventError("neither tag nor digest is set", "target")
    if target.digest and not DIGEST_PATTERN.match(target.digest):
        raise MalformedEventError(f"invalid digest {target.digest!r}", "target.digest")

    platform = Platform.from_dict(target.platform) if target.platform else None

    return RegistryEvent(
        registry=registry,
        repository=target.repository,
        tag=target.tag,
        digest=target.digest,
        platform=platform,
    )


def events_from_envelope(payload: Any) -> list[RegistryEvent]:
    """
    Filter and normalize every record of an envelope.

    Malformed records are logged and skipped.

    Raises:
        MalformedEventError: If the payload itself is not an envelope
    """
    events = []
    for notification in filter_events(parse_envelope(payload)):
        try:
            event = normalize_event(notification)
        except MalformedEventError as e:
            logger.warning(f"Skipping notification {notification.id or '<no id>'}: {e}")
            continue
        logger.debug(f"Received event {notification.id or '<no id>'} for {event.reference()}")
        events.append(event)
    return events


__all__ = [
    "parse_envelope",
    "registry_from_url",
    "normalize_event",
    "events_from_envelope",
]
