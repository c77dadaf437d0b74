"""Tests for notification normalization."""

import pytest

from core.exceptions import MalformedEventError
from core.models import Platform, RawNotification, RegistryEvent
from core.normalizer import (
    events_from_envelope,
    normalize_event,
    parse_envelope,
    registry_from_url,
)
from conftest import UBUNTU_DIGEST


class TestRegistryFromUrl:
    """Tests for registry host extraction."""

    def test_host(self):
        assert registry_from_url("https://my-registry/v2/my-repo/manifests/latest") == "my-registry"

    def test_host_with_port(self):
        assert registry_from_url("http://localhost:5000/v2/app/manifests/1.0") == "localhost:5000"

    def test_userinfo_stripped(self):
        assert registry_from_url("https://user:pw@registry.example.com/v2/x") == "registry.example.com"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "not a url",
            "/v2/my-repo/manifests/latest",
            "https://[::1/v2/app",
            "https://registry:abc/v2/app",
        ],
    )
    def test_invalid(self, url):
        with pytest.raises(MalformedEventError):
            registry_from_url(url)


class TestNormalizeEvent:
    """Tests for normalize_event."""

    def test_push_event(self, notification_factory):
        """Test that registry, repository, tag and digest are extracted."""
        raw = RawNotification.from_dict(
            notification_factory(
                repository="my-repo",
                url=f"https://my-registry/v2/my-repo/manifests/{UBUNTU_DIGEST}",
            )
        )

        event = normalize_event(raw)

        assert event == RegistryEvent(
            registry="my-registry",
            repository="my-repo",
            tag="latest",
            digest=UBUNTU_DIGEST,
        )

    def test_platform_carried(self, notification_factory):
        raw = RawNotification.from_dict(
            notification_factory(platform={"os": "linux", "architecture": "arm", "variant": "v7"})
        )
        assert normalize_event(raw).platform == Platform("linux", "arm", "v7")

    def test_incomplete_platform_ignored(self, notification_factory):
        raw = RawNotification.from_dict(notification_factory(platform={"os": "linux"}))
        assert normalize_event(raw).platform is None

    def test_digest_only(self, notification_factory):
        event = normalize_event(RawNotification.from_dict(notification_factory(tag="")))
        assert event.tag == ""
        assert event.reference() == f"docker.io/library/ubuntu@{UBUNTU_DIGEST}"

    def test_tag_only(self, notification_factory):
        event = normalize_event(
            RawNotification.from_dict(
                notification_factory(digest="", url="https://docker.io/v2/library/ubuntu/manifests/latest")
            )
        )
        assert event.reference() == "docker.io/library/ubuntu:latest"

    def test_unparseable_url(self, notification_factory):
        raw = RawNotification.from_dict(notification_factory(url="https://[broken/v2"))
        with pytest.raises(MalformedEventError) as exc_info:
            normalize_event(raw)
        assert exc_info.value.field == "target.url"

    def test_missing_repository(self, notification_factory):
        raw = RawNotification.from_dict(notification_factory(repository=""))
        with pytest.raises(MalformedEventError):
            normalize_event(raw)

    def test_missing_tag_and_digest(self, notification_factory):
        raw = RawNotification.from_dict(notification_factory(tag="", digest=""))
        with pytest.raises(MalformedEventError):
            normalize_event(raw)

    def test_invalid_digest(self, notification_factory):
        raw = RawNotification.from_dict(notification_factory(digest="not-a-digest"))
        with pytest.raises(MalformedEventError):
            normalize_event(raw)


class TestEnvelope:
    """Tests for envelope parsing."""

    def test_parse_envelope(self, notification_factory):
        records = parse_envelope({"events": [notification_factory(), notification_factory(action="pull")]})
        assert [r.action for r in records] == ["push", "pull"]

    def test_envelope_without_events(self):
        assert parse_envelope({}) == []

    @pytest.mark.parametrize("payload", [[], "x", None, {"events": {"a": 1}}])
    def test_not_an_envelope(self, payload):
        with pytest.raises(MalformedEventError):
            parse_envelope(payload)

    def test_events_from_envelope_skips_malformed(self, notification_factory):
        """Test that a broken record does not affect the others."""
        payload = {
            "events": [
                notification_factory(url="::::"),
                notification_factory(action="pull"),
                notification_factory(repository="good/repo"),
            ]
        }

        events = events_from_envelope(payload)

        assert len(events) == 1
        assert events[0].repository == "good/repo"
