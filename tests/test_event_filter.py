"""Tests for registry notification filtering."""

import pytest

from constants import KNOWN_MANIFEST_MEDIA_TYPES
from core.event_filter import filter_events, is_relevant
from core.models import RawNotification


def _notification(action, media_type, event_id=""):
    return RawNotification.from_dict(
        {"id": event_id, "action": action, "target": {"mediaType": media_type}}
    )


class TestFilterEvents:
    """Tests for filter_events."""

    def test_filters_non_push_and_non_manifest(self):
        """Test that only pushes of manifest media types survive."""
        events = [
            _notification("push", "application/vnd.docker.distribution.manifest.v2+json"),
            _notification("pull", "application/vnd.oci.image.manifest.v1+json"),
            _notification("push", "application/vnd.unknown.type"),
        ]

        filtered = filter_events(events)

        assert len(filtered) == 1
        assert filtered[0].action == "push"
        assert filtered[0].target.media_type == "application/vnd.docker.distribution.manifest.v2+json"

    @pytest.mark.parametrize("media_type", KNOWN_MANIFEST_MEDIA_TYPES)
    def test_push_of_known_manifest_kept(self, media_type):
        assert is_relevant(_notification("push", media_type))

    @pytest.mark.parametrize("action", ["pull", "mount", "delete", "PUSH", ""])
    def test_other_actions_dropped(self, action):
        assert not is_relevant(_notification(action, KNOWN_MANIFEST_MEDIA_TYPES[0]))

    @pytest.mark.parametrize(
        "media_type",
        [
            "application/vnd.docker.image.rootfs.diff.tar.gzip",
            "application/vnd.oci.image.layer.v1.tar+gzip",
            "application/octet-stream",
            "",
        ],
    )
    def test_blobs_dropped(self, media_type):
        assert not is_relevant(_notification("push", media_type))

    def test_preserves_order(self):
        manifest = KNOWN_MANIFEST_MEDIA_TYPES[0]
        events = [
            _notification("push", manifest, "a"),
            _notification("delete", manifest, "b"),
            _notification("push", manifest, "c"),
            _notification("push", manifest, "d"),
        ]
        assert [e.id for e in filter_events(events)] == ["a", "c", "d"]

    def test_malformed_records_excluded(self):
        events = [RawNotification.from_dict(None), RawNotification.from_dict({"target": 3})]
        assert filter_events(events) == []

    def test_empty(self):
        assert filter_events([]) == []
