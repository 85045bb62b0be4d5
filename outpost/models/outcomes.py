"""Delivery outcome — the transient result of one delivery attempt."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class DeliveryStatus(str, Enum):
    OK = "ok"
    ERROR = "error"


class DeliveryOutcome(BaseModel):
    """Result of a single ``deliver`` call, consumed by the stats recorder."""

    model_config = ConfigDict(frozen=True)

    destination: str
    status: DeliveryStatus
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.OK
