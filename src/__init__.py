"""
Scanhook - Registry Push to Scan Job Dispatcher

Listens for container registry push notifications and creates exactly one
vulnerability scan job per pushed image and platform in Kubernetes.
"""

__version__ = "0.3.0"
__author__ = "Scanhook maintainers"

from core.models import (
    DispatchOutcome,
    Platform,
    RegistryEvent,
    ScanJobSpec,
)

__all__ = [
    "DispatchOutcome",
    "Platform",
    "RegistryEvent",
    "ScanJobSpec",
]
