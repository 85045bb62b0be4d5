"""Elasticsearch output — posts events to a time-suffixed index.

Address layout: ``{host_port}/{index}[-{suffix}]/{type}`` where the suffix
follows ``ElasticsearchConfig.suffix``:

=========  ==========================
policy     index
=========  ==========================
none       ``index``
monthly    ``index-YYYY.MM``
annually   ``index-YYYY``
daily      ``index-YYYY.MM.DD``
=========  ==========================

Dates are taken from the injected clock (UTC by default) at delivery time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import httpx

from outpost.models.destinations import ElasticsearchConfig, SuffixPolicy
from outpost.models.event import SecurityEvent
from outpost.outputs.base import OutputAdapter
from outpost.outputs.http import HttpSender, parse_endpoint

if TYPE_CHECKING:
    from outpost.core.metrics import MetricsEmitter
    from outpost.core.stats import Statistics

_SUFFIX_FORMATS: dict[SuffixPolicy, str] = {
    SuffixPolicy.MONTHLY: "%Y.%m",
    SuffixPolicy.ANNUALLY: "%Y",
    SuffixPolicy.DAILY: "%Y.%m.%d",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def index_name(index: str, suffix: SuffixPolicy, now: datetime) -> str:
    """Return the index name for *now* under the *suffix* policy."""
    if suffix is SuffixPolicy.NONE:
        return index
    return f"{index}-{now.strftime(_SUFFIX_FORMATS[suffix])}"


def build_endpoint(config: ElasticsearchConfig, now: datetime) -> str:
    """Raw (unvalidated) document endpoint for *now*."""
    base = config.host_port.rstrip("/")
    return f"{base}/{index_name(config.index, config.suffix, now)}/{config.type}"


class ElasticsearchOutput(OutputAdapter[ElasticsearchConfig]):
    """Posts each event as a JSON document to Elasticsearch.

    Parameters
    ----------
    config, stats, metrics:
        See ``OutputAdapter``.
    sender:
        Shared HTTP sender.  Built from the config when omitted.
    clock:
        Returns the current time; used for the index suffix.
    """

    name = "elasticsearch"

    def __init__(
        self,
        config: ElasticsearchConfig,
        stats: Statistics,
        metrics: MetricsEmitter,
        *,
        sender: HttpSender | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(config, stats, metrics)
        self._sender = sender or HttpSender(
            verify=config.check_cert,
            timeout_seconds=config.timeout_seconds,
        )
        self._clock = clock

    def resolve_endpoint(self, now: datetime | None = None) -> httpx.URL:
        """Validated document endpoint for *now* (defaults to the clock)."""
        return parse_endpoint(build_endpoint(self._config, now or self._clock()))

    def _send(self, event: SecurityEvent) -> None:
        endpoint = self.resolve_endpoint()

        if self._config.username and self._config.password:
            self._sender.basic_auth(self._config.username, self._config.password)

        for header, value in self._config.custom_headers.items():
            self._sender.add_header(header, value)

        self._sender.post(endpoint, event.to_json())

    @property
    def _success_message(self) -> str:
        return "Document indexed"

    def close(self) -> None:
        self._sender.close()
