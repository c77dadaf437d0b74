"""
Pytest fixtures and configuration for Scanhook tests.

Provides shared fixtures, an in-memory job platform with atomic create
semantics and a static platform lookup.
"""

import threading
from typing import Optional

import pytest

from core.dispatcher import Dispatcher
from core.exceptions import JobAlreadyExistsError
from core.job_builder import ScanJobBuilder
from core.models import JobRef, Platform, RegistryEvent, ScanJobSpec
from core.platform_interface import JobPlatform, PlatformLookup
from core.platforms import PlatformResolver

UBUNTU_DIGEST = "sha256:e692418e4cbaf90ca69d05a66403747baa33ee08806650b51fab815ad7fc331f"


class InMemoryJobPlatform(JobPlatform):
    """Job platform keeping jobs in a dict, create is atomic under a lock."""

    def __init__(self, list_barrier: Optional[threading.Barrier] = None):
        self.jobs: dict[str, ScanJobSpec] = {}
        self.create_calls = 0
        self.list_calls = 0
        self.list_barrier = list_barrier
        self._lock = threading.Lock()

    def list_jobs(self, namespace, label_selector, timeout=None):
        wanted = dict(
            part.partition("=")[::2] for part in label_selector.split(",") if part
        )
        with self._lock:
            self.list_calls += 1
            matches = [
                JobRef(name=spec.name, namespace=spec.namespace, labels=spec.labels)
                for spec in self.jobs.values()
                if spec.namespace == namespace
                and all(spec.labels.get(k) == v for k, v in wanted.items())
            ]
        if self.list_barrier is not None:
            # hold every caller until all have listed, forcing a create race
            self.list_barrier.wait(timeout=5)
        return matches

    def create_job(self, namespace, spec, timeout=None):
        with self._lock:
            self.create_calls += 1
            if spec.name in self.jobs:
                raise JobAlreadyExistsError(spec.name)
            self.jobs[spec.name] = spec


class StaticPlatformLookup(PlatformLookup):
    """Lookup answering every reference with the same platforms."""

    def __init__(self, platforms=None, error: Optional[Exception] = None):
        self.platforms = platforms if platforms is not None else [Platform("linux", "amd64")]
        self.error = error
        self.calls = []

    def resolve_platforms(self, reference, insecure=False, timeout=None):
        self.calls.append((reference, insecure))
        if self.error is not None:
            raise self.error
        return list(self.platforms)


@pytest.fixture
def ubuntu_event():
    """docker.io/library/ubuntu:latest pushed with its digest."""
    return RegistryEvent(
        registry="docker.io",
        repository="library/ubuntu",
        tag="latest",
        digest=UBUNTU_DIGEST,
    )


@pytest.fixture
def linux_amd64():
    return Platform("linux", "amd64")


@pytest.fixture
def job_platform():
    return InMemoryJobPlatform()


@pytest.fixture
def platform_lookup():
    return StaticPlatformLookup()


@pytest.fixture
def dispatcher(job_platform, platform_lookup):
    """Dispatcher over in-memory collaborators, namespace 'scans'."""
    return Dispatcher(
        job_platform,
        PlatformResolver(platform_lookup),
        ScanJobBuilder("scans"),
    )


def make_notification(
    action="push",
    media_type="application/vnd.docker.distribution.manifest.v2+json",
    repository="library/ubuntu",
    tag="latest",
    digest=UBUNTU_DIGEST,
    url=None,
    event_id="1234567890",
    platform=None,
):
    """Build one record of a registry notification envelope."""
    if url is None:
        url = f"https://docker.io/v2/{repository}/manifests/{digest}"
    target = {
        "mediaType": media_type,
        "size": 7143,
        "digest": digest,
        "length": 7143,
        "repository": repository,
        "url": url,
        "tag": tag,
    }
    if platform is not None:
        target["platform"] = platform
    return {
        "id": event_id,
        "timestamp": "2022-01-01T12:00:00Z",
        "action": action,
        "target": target,
        "request": {
            "id": "9876543210",
            "addr": "192.168.1.1:51234",
            "host": "docker.io",
            "method": "PUT",
        },
    }


@pytest.fixture
def notification_factory():
    return make_notification
