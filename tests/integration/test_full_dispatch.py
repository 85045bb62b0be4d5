"""End-to-end integration tests — settings to counters and Prometheus samples.

These tests build the dispatcher from ``OutpostSettings`` with all three
outputs enabled, feed events through it, and check the delivery counters,
the Prometheus output counter, and the statistics collector together.
Network transports are replaced by ``httpx.MockTransport`` and a fake
broker client.
"""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from outpost.config import OutpostSettings
from outpost.core.metrics import MetricsEmitter, PrometheusBackend, StatisticsCollector
from outpost.core.stats import CounterSnapshot, Statistics
from outpost.models.event import Priority
from outpost.outputs.dispatcher import OutputDispatcher


class TestFullDispatch:
    """Settings -> dispatcher -> outputs -> counters -> Prometheus."""

    @pytest.fixture
    def pipeline(self, make_http, make_mqtt_transport, clock):
        settings = OutpostSettings(
            _env_file=None,
            elasticsearch={"host_port": "http://es:9200", "index": "falco", "suffix": "monthly"},
            mqtt={"broker": "tcp://broker:1883", "topic": "alerts", "qos": 1, "retained": True},
            webhook={"url": "https://hooks.example.com/outpost", "minimum_priority": "error"},
        )
        es_sender, es_handler = make_http(status_code=201)
        hook_sender, hook_handler = make_http(status_code=429)
        transport = make_mqtt_transport()

        stats = Statistics()
        registry = CollectorRegistry()
        registry.register(StatisticsCollector(stats))
        metrics = MetricsEmitter(PrometheusBackend(registry))

        dispatcher = OutputDispatcher.from_config(
            settings,
            stats,
            metrics,
            elasticsearch={"sender": es_sender, "clock": clock},
            mqtt={"transport": transport},
            webhook={"sender": hook_sender},
        )
        yield {
            "dispatcher": dispatcher,
            "stats": stats,
            "registry": registry,
            "metrics": metrics,
            "es": es_handler,
            "hook": hook_handler,
            "mqtt": transport,
        }
        dispatcher.close()
        metrics.close()

    def test_event_reaches_every_output(self, pipeline, make_event):
        event = make_event(priority=Priority.CRITICAL)
        pipeline["dispatcher"].dispatch(event)

        assert str(pipeline["es"].requests[0].url) == "http://es:9200/falco-2024.03/_doc"
        assert pipeline["mqtt"].published == [("alerts", event.to_json(), 1, True)]
        assert len(pipeline["hook"].requests) == 1

        stats = pipeline["stats"]
        assert stats.get("elasticsearch") == CounterSnapshot(total=1, ok=1, error=0)
        assert stats.get("mqtt") == CounterSnapshot(total=1, ok=1, error=0)
        assert stats.get("webhook") == CounterSnapshot(total=1, ok=0, error=1)

    def test_minimum_priority_applied(self, pipeline, make_event):
        pipeline["dispatcher"].dispatch(make_event(priority=Priority.WARNING))

        assert pipeline["hook"].requests == []
        assert pipeline["stats"].get("webhook") == CounterSnapshot()
        assert pipeline["stats"].get("mqtt").ok == 1

    def test_prometheus_samples(self, pipeline, make_event):
        for _ in range(3):
            pipeline["dispatcher"].dispatch(make_event(priority=Priority.ALERT))
        pipeline["metrics"].flush()
        registry = pipeline["registry"]

        def outputs_total(destination: str, status: str) -> float | None:
            return registry.get_sample_value(
                "outpost_outputs_total", {"destination": destination, "status": status}
            )

        def destination_events(destination: str, kind: str) -> float | None:
            return registry.get_sample_value(
                "outpost_destination_events_total",
                {"destination": destination, "kind": kind},
            )

        assert outputs_total("elasticsearch", "ok") == 3.0
        assert outputs_total("mqtt", "ok") == 3.0
        assert outputs_total("webhook", "error") == 3.0
        assert destination_events("webhook", "total") == 3.0
        assert destination_events("webhook", "error") == 3.0
