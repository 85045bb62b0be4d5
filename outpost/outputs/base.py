"""Output protocol, shared delivery template, and the output error taxonomy.

Every output implements ``BaseOutput``: an ``output_name`` property, a
``deliver(event)`` method, and ``close()``.  Concrete adapters subclass
``OutputAdapter``, which fixes the bookkeeping order of a delivery:

1. increment ``total``
2. ``_send(event)`` — resolve the address, connect, authenticate, add
   headers, send.  Any failure is raised as an ``OutputError``.
3. ``ok`` counter + ``ok`` metric + INFO log, or ``report_error``.

``report_error`` is the only failure path, so every attempt records
exactly one ``total`` and exactly one of ``ok`` / ``error``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Generic, Protocol, TypeVar, runtime_checkable

from outpost.core.metrics import OUTPUTS_CATEGORY
from outpost.models.destinations import DestinationConfig
from outpost.models.event import Priority, SecurityEvent
from outpost.models.outcomes import DeliveryOutcome, DeliveryStatus

if TYPE_CHECKING:
    from outpost.core.metrics import MetricsEmitter
    from outpost.core.stats import Statistics

logger = logging.getLogger(__name__)

ConfigT = TypeVar("ConfigT", bound=DestinationConfig)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class OutputError(RuntimeError):
    """Base class for a failed delivery attempt.

    ``status`` optionally carries a short machine-readable reason
    (an HTTP status code, an MQTT reason string).
    """

    def __init__(self, message: str, *, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


class AddressError(OutputError):
    """The destination address could not be resolved; nothing was sent."""


class OutputConnectionError(OutputError):
    """A transport connection could not be established or was lost."""


class DeliveryError(OutputError):
    """The send completed but was rejected, or the transport call failed."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


@runtime_checkable
class BaseOutput(Protocol):
    """Protocol every output must implement to be dispatched to."""

    @property
    def output_name(self) -> str:
        """Unique destination name (``"elasticsearch"``, ``"mqtt"``...)."""
        ...

    @property
    def minimum_priority(self) -> Priority:
        """Least severe priority this output accepts."""
        ...

    def deliver(self, event: SecurityEvent) -> None:
        """Deliver one event.  Must never raise."""
        ...

    def close(self) -> None:
        """Release transport resources."""
        ...


# ---------------------------------------------------------------------------
# Delivery template
# ---------------------------------------------------------------------------


class OutputAdapter(ABC, Generic[ConfigT]):
    """Base class implementing the delivery bookkeeping for an output.

    Parameters
    ----------
    config:
        The destination configuration (shared, read-only).
    stats:
        Process-wide delivery counters.
    metrics:
        Fire-and-forget metric emitter.
    """

    #: Destination name used for counters, metric tags and logs.
    name: str = ""

    def __init__(
        self,
        config: ConfigT,
        stats: Statistics,
        metrics: MetricsEmitter,
    ) -> None:
        self._config = config
        self._stats = stats
        self._metrics = metrics

    @property
    def output_name(self) -> str:
        return self.name

    @property
    def config(self) -> ConfigT:
        return self._config

    @property
    def minimum_priority(self) -> Priority:
        return self._config.minimum_priority

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def deliver(self, event: SecurityEvent) -> None:
        """Deliver *event* and record exactly one outcome for it."""
        self._stats.increment_total(self.name)
        try:
            self._send(event)
        except OutputError as exc:
            outcome = DeliveryOutcome(
                destination=self.name,
                status=DeliveryStatus.ERROR,
                detail=str(exc),
            )
            self._record(outcome, status=exc.status)
            return
        except Exception as exc:  # noqa: BLE001
            outcome = DeliveryOutcome(
                destination=self.name,
                status=DeliveryStatus.ERROR,
                detail=f"{type(exc).__name__}: {exc}",
            )
            self._record(outcome)
            return

        self._record(DeliveryOutcome(destination=self.name, status=DeliveryStatus.OK))

    def report_error(self, detail: str, status: str | None = None) -> None:
        """Record a failed attempt: error counter, error metric, ERROR log."""
        self._stats.increment_error(self.name)
        self._metrics.emit(
            OUTPUTS_CATEGORY,
            1,
            [f"output:{self.name}", "status:error"],
            detail=status or detail,
        )
        logger.error("%s - %s", self.name, detail)

    def close(self) -> None:
        """Release transport resources.  Default: nothing to release."""

    # ------------------------------------------------------------------
    # Subclass hook
    # ------------------------------------------------------------------

    @abstractmethod
    def _send(self, event: SecurityEvent) -> None:
        """Resolve, connect, authenticate and send; raise ``OutputError``."""

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _record(self, outcome: DeliveryOutcome, status: str | None = None) -> None:
        if not outcome.ok:
            self.report_error(outcome.detail or "delivery failed", status=status)
            return
        self._stats.increment_ok(self.name)
        self._metrics.emit(
            OUTPUTS_CATEGORY, 1, [f"output:{self.name}", "status:ok"]
        )
        logger.info("%s - %s", self.name, self._success_message)

    @property
    def _success_message(self) -> str:
        return "Event delivered"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(address={self._config.address!r})"
