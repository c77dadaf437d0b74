"""
FastAPI application receiving registry notification envelopes.

POST /event decodes the envelope, filters and normalizes its records and
submits the resulting events to the dispatch channel. The registry retries
deliveries that are not answered with 2xx, so a full channel is reported as
503 to get the envelope redelivered later.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Protocol

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse

from core.exceptions import MalformedEventError, QueueFullError
from core.models import RegistryEvent
from core.normalizer import events_from_envelope

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Anything accepting normalized events, usually a DispatchWorkerPool."""

    def start(self) -> None: ...

    def stop(self, wait: bool = True) -> None: ...

    def submit(self, event: RegistryEvent) -> None: ...

    def health(self) -> dict: ...


def create_app(sink: EventSink) -> FastAPI:
    """
    Build the webhook application.

    The sink is started when the application starts up and stopped on
    shutdown.

    Args:
        sink: Receiver for normalized events

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sink.start()
        yield
        await run_in_threadpool(sink.stop)

    app = FastAPI(title="Scanhook", lifespan=lifespan)

    def submit_all(events: list[RegistryEvent]) -> None:
        for event in events:
            sink.submit(event)

    @app.post("/event")
    async def handle_registry_notification(request: Request):
        body = await request.body()
        try:
            payload = json.loads(body)
        except ValueError as e:
            return PlainTextResponse(f"error decoding request body: {e}", status_code=400)

        try:
            events = events_from_envelope(payload)
        except MalformedEventError as e:
            return PlainTextResponse(str(e), status_code=400)

        try:
            await run_in_threadpool(submit_all, events)
        except QueueFullError as e:
            logger.warning(f"Rejecting notification envelope: {e}")
            return PlainTextResponse(str(e), status_code=503)

        return JSONResponse({"accepted": len(events)})

    @app.get("/healthz")
    async def health_check():
        health = sink.health()
        status_code = 200 if health.get("running") else 503
        return JSONResponse(health, status_code=status_code)

    return app


__all__ = ["create_app", "EventSink"]
