"""OutputDispatcher — fans one event out to every enabled output.

Every event dispatched through this module is handed to each output whose
minimum priority admits it.  Outputs run concurrently on a thread pool and
record their own outcomes; one output failing, raising, or blocking on
I/O never prevents another from delivering and recording its result.

The set of outputs is closed: ``from_config`` builds one adapter per
enabled destination (Elasticsearch, MQTT, Webhook) at startup.  A
configuration defect fails there, never at delivery time.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from typing import TYPE_CHECKING, Any

from outpost.models.destinations import DestinationConfig
from outpost.models.event import SecurityEvent
from outpost.outputs.base import BaseOutput, OutputAdapter
from outpost.outputs.elasticsearch import ElasticsearchOutput
from outpost.outputs.mqtt import MQTTOutput
from outpost.outputs.webhook import WebhookOutput

if TYPE_CHECKING:
    from outpost.config import OutpostSettings
    from outpost.core.metrics import MetricsEmitter
    from outpost.core.stats import Statistics

logger = logging.getLogger(__name__)


class DispatcherConfigError(RuntimeError):
    """Raised at startup when the set of outputs cannot be resolved."""


class OutputDispatcher:
    """Delivers events to a fixed set of outputs.

    Usage
    -----
    >>> dispatcher = OutputDispatcher.from_config(settings, stats, metrics)
    >>> dispatcher.dispatch(event)
    >>> dispatcher.close()

    Parameters
    ----------
    outputs:
        The outputs to deliver to.  Names must be unique.
    max_workers:
        Thread pool size.  Defaults to one worker per output.
    """

    def __init__(
        self,
        outputs: Sequence[BaseOutput],
        *,
        max_workers: int | None = None,
    ) -> None:
        names = [output.output_name for output in outputs]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise DispatcherConfigError(
                f"Duplicate output names: {', '.join(duplicates)}"
            )

        self._outputs: tuple[BaseOutput, ...] = tuple(outputs)
        self._executor: ThreadPoolExecutor | None = None
        if self._outputs:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers or len(self._outputs),
                thread_name_prefix="outpost-output",
            )
        self._closed = False

        for output in self._outputs:
            logger.info(
                "Enabled output: %s (minimum priority %s)",
                output.output_name,
                output.minimum_priority.value,
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        settings: OutpostSettings,
        stats: Statistics,
        metrics: MetricsEmitter,
        **adapter_options: Any,
    ) -> OutputDispatcher:
        """Build one adapter per enabled destination in *settings*.

        ``adapter_options`` maps an output name to extra keyword arguments
        for its constructor (e.g. ``mqtt={"transport": fake}``).

        Raises
        ------
        DispatcherConfigError
            If an enabled destination's adapter cannot be constructed.
        """
        candidates: list[tuple[type[OutputAdapter[Any]], DestinationConfig]] = [
            (ElasticsearchOutput, settings.elasticsearch),
            (MQTTOutput, settings.mqtt),
            (WebhookOutput, settings.webhook),
        ]

        outputs: list[BaseOutput] = []
        for adapter_cls, destination in candidates:
            if not destination.is_enabled:
                continue
            options = adapter_options.get(adapter_cls.name, {})
            try:
                outputs.append(adapter_cls(destination, stats, metrics, **options))
            except Exception as exc:
                for built in outputs:
                    built.close()
                raise DispatcherConfigError(
                    f"Cannot configure output {adapter_cls.name}: {exc}"
                ) from exc

        if not outputs:
            logger.warning("No outputs enabled — events will not be forwarded")

        return cls(outputs, max_workers=settings.dispatch_workers)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def outputs(self) -> list[BaseOutput]:
        """Return a copy of the output list."""
        return list(self._outputs)

    @property
    def output_names(self) -> list[str]:
        return [output.output_name for output in self._outputs]

    def targets_for(self, event: SecurityEvent) -> list[BaseOutput]:
        """Outputs whose minimum priority admits *event*."""
        return [
            output
            for output in self._outputs
            if output.minimum_priority.admits(event.priority)
        ]

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(self, event: SecurityEvent) -> None:
        """Deliver *event* to every admitting output and wait for them.

        Outputs record their own outcomes; nothing is returned and no
        per-output failure is raised to the caller.
        """
        if self._closed:
            raise RuntimeError("OutputDispatcher is closed")

        targets = self.targets_for(event)
        if not targets or self._executor is None:
            logger.debug("No output accepts event %s (%s)", event.uuid, event.priority.value)
            return

        futures = {
            self._executor.submit(output.deliver, event): output for output in targets
        }
        wait(futures)

        for future, output in futures.items():
            exc = future.exception()
            if exc is not None:
                logger.error(
                    "Output %s raised while delivering event %s: %s",
                    output.output_name,
                    event.uuid,
                    exc,
                )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Stop the worker pool and release every output's transport."""
        if self._closed:
            return
        self._closed = True
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        for output in self._outputs:
            try:
                output.close()
            except Exception:
                logger.exception("Output %s failed to close", output.output_name)

    def __enter__(self) -> OutputDispatcher:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
