"""Fire-and-forget metric emission.

Outputs emit one metric per delivery outcome.  Emission must never block
or fail a delivery, so ``MetricsEmitter.emit`` only performs a
non-blocking put into a bounded queue; a single background worker drains
the queue into a ``MetricsBackend``.

Back-pressure policy
--------------------
When the queue is full the metric is **dropped** and counted in
``MetricsEmitter.dropped``.  Delivery latency always wins over metric
completeness.

Prometheus
----------
``PrometheusBackend`` turns ``output:<name>`` / ``status:<ok|error>`` tags
into the labelled counter ``outpost_outputs_total``.
``StatisticsCollector`` exposes the process-wide ``Statistics`` triplets
as ``outpost_destination_events_total`` for scraping.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from prometheus_client import CollectorRegistry, Counter, start_http_server
from prometheus_client.core import REGISTRY, CounterMetricFamily
from pydantic import BaseModel, ConfigDict

from outpost.core.stats import COUNTER_KINDS

if TYPE_CHECKING:
    from outpost.core.stats import Statistics

logger = logging.getLogger(__name__)

OUTPUTS_CATEGORY = "outputs"


class MetricEvent(BaseModel):
    """A single counter increment bound for the metrics backend."""

    model_config = ConfigDict(frozen=True)

    category: str
    delta: int = 1
    tags: tuple[str, ...] = ()
    detail: str | None = None

    def tag_map(self) -> dict[str, str]:
        """Parse ``key:value`` tags into a dict (later tags win)."""
        parsed: dict[str, str] = {}
        for tag in self.tags:
            key, _, value = tag.partition(":")
            parsed[key] = value
        return parsed


@runtime_checkable
class MetricsBackend(Protocol):
    """Anything that can record a ``MetricEvent``."""

    def count(self, event: MetricEvent) -> None:
        ...


class MetricsEmitter:
    """Bounded, non-blocking metric queue consumed by a daemon worker.

    Parameters
    ----------
    backend:
        Destination for metric events.  ``None`` disables emission.
    maxsize:
        Queue capacity; metrics emitted while the queue is full are dropped.
    """

    def __init__(
        self,
        backend: MetricsBackend | None = None,
        *,
        maxsize: int = 1024,
    ) -> None:
        self._backend = backend
        self._queue: queue.Queue[MetricEvent | None] = queue.Queue(maxsize=maxsize)
        self._dropped = 0
        self._dropped_lock = threading.Lock()
        self._closed = False
        self._worker: threading.Thread | None = None

        if backend is not None:
            self._worker = threading.Thread(
                target=self._run, name="outpost-metrics", daemon=True
            )
            self._worker.start()

    @property
    def dropped(self) -> int:
        """Number of metrics discarded because the queue was full."""
        with self._dropped_lock:
            return self._dropped

    @property
    def enabled(self) -> bool:
        return self._backend is not None and not self._closed

    def emit(
        self,
        category: str,
        delta: int,
        tags: Sequence[str],
        detail: str | None = None,
    ) -> bool:
        """Queue a metric without blocking.  Returns ``False`` if not queued."""
        if not self.enabled:
            return False

        event = MetricEvent(
            category=category, delta=delta, tags=tuple(tags), detail=detail
        )
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1
            logger.warning(
                "Metrics queue full — dropped %s metric %s", category, list(tags)
            )
            return False
        return True

    def flush(self) -> None:
        """Block until every queued metric has reached the backend."""
        if self._worker is not None and self._worker.is_alive():
            self._queue.join()

    def close(self, timeout: float = 2.0) -> None:
        """Stop accepting metrics, drain the queue and stop the worker."""
        if self._closed:
            return
        self._closed = True
        if self._worker is None:
            return
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            logger.warning("Metrics worker did not drain within %.1fs", timeout)
            return
        self._worker.join(timeout=timeout)

    def __enter__(self) -> MetricsEmitter:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is None:
                    return
                self._backend.count(event)  # type: ignore[union-attr]
            except Exception:
                logger.exception("Metrics backend failed to record %s", event)
            finally:
                self._queue.task_done()


class PrometheusBackend:
    """Records ``outputs`` metrics in a labelled Prometheus counter."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._outputs = Counter(
            "outpost_outputs",
            "Delivery outcomes per destination and status.",
            ["destination", "status"],
            registry=registry if registry is not None else REGISTRY,
        )

    def count(self, event: MetricEvent) -> None:
        if event.category != OUTPUTS_CATEGORY:
            logger.debug("PrometheusBackend: ignoring category %s", event.category)
            return
        tags = event.tag_map()
        self._outputs.labels(
            destination=tags.get("output", "unknown"),
            status=tags.get("status", "unknown"),
        ).inc(event.delta)


class StatisticsCollector:
    """Custom collector exposing ``Statistics`` counters for scraping."""

    def __init__(self, stats: Statistics) -> None:
        self._stats = stats

    def collect(self) -> Iterator[CounterMetricFamily]:
        family = CounterMetricFamily(
            "outpost_destination_events",
            "Delivery attempts per destination (total, ok, error).",
            labels=["destination", "kind"],
        )
        for destination, snapshot in self._stats.snapshot().items():
            for kind in COUNTER_KINDS:
                family.add_metric([destination, kind], getattr(snapshot, kind))
        yield family


def serve_metrics(
    stats: Statistics,
    port: int,
    registry: CollectorRegistry | None = None,
) -> None:
    """Register the statistics collector and start the scrape endpoint."""
    target = registry if registry is not None else REGISTRY
    target.register(StatisticsCollector(stats))
    start_http_server(port, registry=target)
    logger.info("Serving Prometheus metrics on port %d", port)
