"""Tests for the webhook application."""

import pytest
from fastapi.testclient import TestClient

from core.exceptions import QueueFullError
from webhook.server import create_app


class RecordingSink:
    """Sink collecting submitted events."""

    def __init__(self, full=False):
        self.events = []
        self.full = full
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self, wait=True):
        self.stopped = True

    def submit(self, event):
        if self.full:
            raise QueueFullError("event channel full")
        self.events.append(event)

    def health(self):
        return {"running": self.started and not self.stopped, "queue_depth": len(self.events)}


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def http(sink):
    with TestClient(create_app(sink)) as test_client:
        yield test_client


class TestEventEndpoint:
    """Tests for POST /event."""

    def test_accepts_push(self, http, sink, notification_factory):
        response = http.post("/event", json={"events": [notification_factory()]})

        assert response.status_code == 200
        assert response.json() == {"accepted": 1}
        assert len(sink.events) == 1
        assert sink.events[0].repository == "library/ubuntu"
        assert sink.events[0].registry == "docker.io"

    def test_filters_envelope(self, http, sink, notification_factory):
        payload = {
            "events": [
                notification_factory(action="pull"),
                notification_factory(url="not a url"),
                notification_factory(tag="22.04"),
            ]
        }

        response = http.post("/event", json=payload)

        assert response.status_code == 200
        assert response.json() == {"accepted": 1}
        assert [e.tag for e in sink.events] == ["22.04"]

    def test_invalid_json(self, http, sink):
        response = http.post("/event", content=b"{not json", headers={"Content-Type": "application/json"})

        assert response.status_code == 400
        assert "error decoding request body" in response.text
        assert sink.events == []

    def test_not_an_envelope(self, http):
        response = http.post("/event", json=["events"])
        assert response.status_code == 400

    def test_queue_full(self, notification_factory):
        with TestClient(create_app(RecordingSink(full=True))) as test_client:
            response = test_client.post("/event", json={"events": [notification_factory()]})
        assert response.status_code == 503

    def test_empty_envelope(self, http):
        response = http.post("/event", json={"events": []})
        assert response.json() == {"accepted": 0}


class TestLifecycle:
    def test_sink_started_and_stopped(self, sink):
        with TestClient(create_app(sink)):
            assert sink.started
        assert sink.stopped

    def test_healthz(self, http):
        response = http.get("/healthz")
        assert response.status_code == 200
        assert response.json()["running"] is True

    def test_healthz_not_running(self):
        response = TestClient(create_app(RecordingSink())).get("/healthz")
        assert response.status_code == 503
