"""Outpost outputs — one adapter per destination type behind a shared contract.

Every output implements ``BaseOutput`` (``output_name``, ``minimum_priority``,
``deliver``, ``close``).  Concrete adapters derive from ``OutputAdapter``,
which records exactly one outcome per delivery: Elasticsearch (HTTP,
time-suffixed index), MQTT (broker publish), and generic webhooks.

The ``OutputDispatcher`` fans each event out to every enabled output.
"""

from outpost.outputs.base import (
    AddressError,
    BaseOutput,
    DeliveryError,
    OutputAdapter,
    OutputConnectionError,
    OutputError,
)
from outpost.outputs.dispatcher import DispatcherConfigError, OutputDispatcher
from outpost.outputs.elasticsearch import ElasticsearchOutput
from outpost.outputs.mqtt import MQTTOutput
from outpost.outputs.webhook import WebhookOutput

__all__ = [
    "AddressError",
    "BaseOutput",
    "DeliveryError",
    "DispatcherConfigError",
    "ElasticsearchOutput",
    "MQTTOutput",
    "OutputAdapter",
    "OutputConnectionError",
    "OutputDispatcher",
    "OutputError",
    "WebhookOutput",
]
