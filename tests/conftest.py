"""Shared test fixtures for Outpost."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from outpost.core.metrics import MetricEvent, MetricsEmitter
from outpost.core.stats import Statistics
from outpost.models.event import Priority, SecurityEvent
from outpost.outputs.base import OutputConnectionError
from outpost.outputs.http import HttpSender

FIXED_NOW = datetime(2024, 3, 7, 12, 30, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------


class RecordingBackend:
    """Metrics backend that keeps every event it receives."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[MetricEvent] = []

    def count(self, event: MetricEvent) -> None:
        with self._lock:
            self.events.append(event)

    def statuses(self, output: str) -> list[str]:
        with self._lock:
            return [
                e.tag_map()["status"]
                for e in self.events
                if e.tag_map().get("output") == output
            ]


class FakeMQTTTransport:
    """Stands in for ``MQTTTransport``; records calls, fails on request."""

    def __init__(
        self,
        connect_error: Exception | None = None,
        publish_error: Exception | None = None,
    ) -> None:
        self.connect_error = connect_error
        self.publish_error = publish_error
        self.calls: list[tuple[Any, ...]] = []
        self.published: list[tuple[str, str, int, bool]] = []

    def connect(self, host: str, port: int) -> None:
        self.calls.append(("connect", host, port))
        if self.connect_error is not None:
            raise self.connect_error

    def publish(self, topic: str, payload: str, qos: int, retain: bool) -> None:
        self.calls.append(("publish", topic))
        if self.publish_error is not None:
            raise self.publish_error
        self.published.append((topic, payload, qos, retain))

    def disconnect(self) -> None:
        self.calls.append(("disconnect",))


class RecordingHandler:
    """``httpx.MockTransport`` handler answering with a fixed status."""

    def __init__(self, status_code: int = 201, error: Exception | None = None) -> None:
        self.status_code = status_code
        self.error = error
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json={"result": "created"})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def stats() -> Statistics:
    """Provide fresh delivery counters."""
    return Statistics()


@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def metrics(backend: RecordingBackend) -> Iterator[MetricsEmitter]:
    """Provide a metrics emitter feeding the recording backend."""
    emitter = MetricsEmitter(backend, maxsize=256)
    yield emitter
    emitter.close()


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def make_http() -> Iterator[Callable[..., tuple[HttpSender, RecordingHandler]]]:
    """Factory fixture: an ``HttpSender`` backed by a recording mock transport."""
    senders: list[HttpSender] = []

    def _factory(
        status_code: int = 201, error: Exception | None = None
    ) -> tuple[HttpSender, RecordingHandler]:
        handler = RecordingHandler(status_code=status_code, error=error)
        sender = HttpSender(transport=httpx.MockTransport(handler))
        senders.append(sender)
        return sender, handler

    yield _factory

    for sender in senders:
        sender.close()


@pytest.fixture
def make_mqtt_transport() -> Callable[..., FakeMQTTTransport]:
    """Factory fixture: a fake broker transport."""

    def _factory(
        connect_error: Exception | None = None,
        publish_error: Exception | None = None,
    ) -> FakeMQTTTransport:
        return FakeMQTTTransport(connect_error=connect_error, publish_error=publish_error)

    return _factory


@pytest.fixture
def unreachable_broker() -> OutputConnectionError:
    return OutputConnectionError("connect broker:1883: [Errno 111] Connection refused")


# ---------------------------------------------------------------------------
# Event factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_event() -> Callable[..., SecurityEvent]:
    """Factory fixture: build a SecurityEvent with sensible defaults."""

    def _factory(
        priority: Priority | str = Priority.CRITICAL,
        rule: str = "Terminal shell in container",
        **overrides: Any,
    ) -> SecurityEvent:
        defaults: dict[str, Any] = {
            "output": "A shell was spawned in a container (user=root)",
            "priority": priority,
            "rule": rule,
            "time": FIXED_NOW,
            "output_fields": {"user.name": "root", "container.id": "c0ffee"},
            "hostname": "node-1",
            "tags": ["container", "shell"],
        }
        defaults.update(overrides)
        return SecurityEvent(**defaults)

    return _factory


@pytest.fixture
def event(make_event: Callable[..., SecurityEvent]) -> SecurityEvent:
    """Convenience: a ready-made SecurityEvent with test defaults."""
    return make_event()
