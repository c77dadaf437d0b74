"""Core dispatch pipeline: normalization, identity, job building and dispatch."""

from core.models import (
    DispatchOutcome,
    DispatchResult,
    Platform,
    RegistryEvent,
    ScanJobSpec,
)

__all__ = [
    "DispatchOutcome",
    "DispatchResult",
    "Platform",
    "RegistryEvent",
    "ScanJobSpec",
]
