"""
Platform resolution and the supported-platform allow-list.
"""

import logging
from typing import Optional

from constants import SUPPORTED_PLATFORMS
from core.exceptions import ReferenceNotFoundError
from core.models import Platform, RegistryEvent
from core.platform_interface import PlatformLookup

logger = logging.getLogger(__name__)


def is_platform_supported(platform: Platform) -> bool:
    """
    Check a platform against the allow-list.

    An allow-list entry without a variant matches any variant of its os and
    architecture (index entries list arm64 as linux/arm64/v8). An entry that
    pins a variant matches that variant or a platform without one.
    """
    for os_name, architecture, variant in SUPPORTED_PLATFORMS:
        if platform.os != os_name or platform.architecture != architecture:
            continue
        if not variant or not platform.variant or platform.variant == variant:
            return True
    return False


class PlatformResolver:
    """
    Determines which platform(s) a registry event should be scanned for.

    The platform carried by the event wins. Otherwise the registry is asked,
    which may yield several platforms when the pushed manifest is an index.
    """

    def __init__(self, lookup: Optional[PlatformLookup], insecure_registry: bool = False):
        """
        Initialize resolver.

        Args:
            lookup: Registry metadata lookup, None to rely on event platforms only
            insecure_registry: Skip TLS verification against the registry
        """
        self.lookup = lookup
        self.insecure_registry = insecure_registry

    def resolve(self, event: RegistryEvent, timeout: Optional[float] = None) -> list[Platform]:
        """
        Resolve the platform(s) of an event.

        Raises:
            RegistryLookupError: If the registry lookup fails
        """
        if event.platform is not None:
            return [event.platform]

        if self.lookup is None:
            raise ReferenceNotFoundError(event.reference(), "no platform in event and no registry lookup configured")

        platforms = self.lookup.resolve_platforms(
            event.reference(),
            insecure=self.insecure_registry,
            timeout=timeout,
        )
        logger.debug(f"Resolved {event.reference()} to {', '.join(str(p) for p in platforms)}")
        return platforms


__all__ = ["PlatformResolver", "is_platform_supported"]
