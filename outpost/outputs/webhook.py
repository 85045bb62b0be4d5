"""Webhook output — sends each event to an arbitrary HTTP endpoint."""

from __future__ import annotations

from typing import TYPE_CHECKING

from outpost.models.destinations import WebhookConfig
from outpost.models.event import SecurityEvent
from outpost.outputs.base import OutputAdapter
from outpost.outputs.http import HttpSender, parse_endpoint

if TYPE_CHECKING:
    from outpost.core.metrics import MetricsEmitter
    from outpost.core.stats import Statistics


class WebhookOutput(OutputAdapter[WebhookConfig]):
    """POSTs (or PUTs) the event JSON to ``WebhookConfig.url``."""

    name = "webhook"

    def __init__(
        self,
        config: WebhookConfig,
        stats: Statistics,
        metrics: MetricsEmitter,
        *,
        sender: HttpSender | None = None,
    ) -> None:
        super().__init__(config, stats, metrics)
        self._sender = sender or HttpSender(
            verify=config.check_cert,
            timeout_seconds=config.timeout_seconds,
        )

    def _send(self, event: SecurityEvent) -> None:
        endpoint = parse_endpoint(self._config.url)
        for header, value in self._config.custom_headers.items():
            self._sender.add_header(header, value)
        self._sender.request(self._config.method, endpoint, event.to_json())

    def close(self) -> None:
        self._sender.close()
