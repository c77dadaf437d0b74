"""
Logging helper utilities for Scanhook.

Provides consistent per-event context strings and section formatting for
startup and fatal error output.
"""

import logging
from typing import List, Optional

from core.models import Platform, RegistryEvent


def format_event_context(event: RegistryEvent, platform: Optional[Platform] = None) -> str:
    """
    Render the identifying fields of an event as key=value pairs.

    Args:
        event: Registry event being processed
        platform: Resolved platform, if known

    Examples:
        >>> format_event_context(RegistryEvent("docker.io", "library/ubuntu", "latest"))
        'registry=docker.io repository=library/ubuntu tag=latest digest='
    """
    context = (
        f"registry={event.registry} repository={event.repository} "
        f"tag={event.tag} digest={event.digest}"
    )
    if platform is not None:
        context += f" platform={platform}"
    return context


def log_error_section(
    title: str,
    messages: List[str],
    logger: Optional[logging.Logger] = None,
    width: int = 60
) -> None:
    """
    Log an error section with separator lines and multiple messages.

    Args:
        title: Title message for the error section
        messages: List of error messages to display
        logger: Logger instance (defaults to root logger if not provided)
        width: Width of separator line in characters

    Examples:
        >>> log_error_section(
        ...     "Kubernetes configuration not found",
        ...     ["Set KUBECONFIG or run inside a cluster"]
        ... )
        ============================================================
        Kubernetes configuration not found
        Set KUBECONFIG or run inside a cluster
        ============================================================
    """
    if logger is None:
        logger = logging.getLogger()

    logger.error("=" * width)
    logger.error(title)
    for message in messages:
        logger.error(message)
    logger.error("=" * width)


def log_info_header(
    message: str,
    logger: Optional[logging.Logger] = None,
    width: int = 60,
    char: str = "="
) -> None:
    """
    Log an informational header with separator lines.

    Args:
        message: Header message to display
        logger: Logger instance (defaults to root logger if not provided)
        width: Width of separator line in characters
        char: Character to use for separator line
    """
    if logger is None:
        logger = logging.getLogger()

    logger.info(char * width)
    logger.info(message)
    logger.info(char * width)
