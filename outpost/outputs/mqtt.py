"""MQTT output — publishes events to a broker topic.

Transport boundary
------------------
``MQTTTransport`` wraps a ``paho.mqtt.client.Client`` behind three blocking
calls (``connect``, ``publish``, ``disconnect``) and turns paho's
asynchronous acknowledgements into return-or-raise.  ``MQTTOutput`` only
depends on that narrow surface, so tests and alternative clients can be
injected.

Connection state
----------------
::

    disconnected -> connecting -> connected -> publishing -> connected
                                            \\-> connection_lost -> disconnected

Each delivery runs one session under the output's session lock: connect if
not connected, publish, then disconnect once the publish outcome is known.
An unexpected disconnect reported by the client only moves the state to
``connection_lost`` and logs; the next delivery reconnects.
"""

from __future__ import annotations

import logging
import ssl
import threading
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt

from outpost.models.destinations import MQTTConfig
from outpost.models.event import SecurityEvent
from outpost.outputs.base import (
    AddressError,
    DeliveryError,
    OutputAdapter,
    OutputConnectionError,
)

if TYPE_CHECKING:
    from outpost.core.metrics import MetricsEmitter
    from outpost.core.stats import Statistics

logger = logging.getLogger(__name__)

CLIENT_ID_PREFIX = "outpost-"

_PLAIN_SCHEMES = frozenset({"tcp", "mqtt"})
_TLS_SCHEMES = frozenset({"ssl", "tls", "mqtts"})
_DEFAULT_PORTS = {"plain": 1883, "tls": 8883}


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    PUBLISHING = "publishing"
    CONNECTION_LOST = "connection_lost"


class BrokerAddress(NamedTuple):
    """Broker endpoint parsed from a URI."""

    host: str
    port: int
    tls: bool


def parse_broker(uri: str) -> BrokerAddress:
    """Parse ``scheme://host[:port]``; bare ``host[:port]`` means ``tcp``.

    Raises
    ------
    AddressError
        On an unsupported scheme, a missing host, or an invalid port.
    """
    raw = uri.strip()
    if "://" not in raw:
        raw = f"tcp://{raw}"
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError as exc:
        raise AddressError(f"invalid broker {uri!r}: {exc}") from exc

    scheme = parts.scheme.lower()
    if scheme in _TLS_SCHEMES:
        tls = True
    elif scheme in _PLAIN_SCHEMES:
        tls = False
    else:
        raise AddressError(f"invalid broker {uri!r}: unsupported scheme {scheme!r}")

    if not parts.hostname:
        raise AddressError(f"invalid broker {uri!r}: missing host")

    if port is None:
        port = _DEFAULT_PORTS["tls" if tls else "plain"]
    return BrokerAddress(parts.hostname, port, tls)


def new_client_id() -> str:
    return CLIENT_ID_PREFIX + uuid.uuid4().hex[:6]


class MQTTClientTransport(Protocol):
    """Blocking surface ``MQTTOutput`` needs from a broker client."""

    def connect(self, host: str, port: int) -> None:
        ...

    def publish(self, topic: str, payload: str, qos: int, retain: bool) -> None:
        ...

    def disconnect(self) -> None:
        ...


class MQTTTransport:
    """Blocking wrapper around a paho-mqtt client.

    Parameters
    ----------
    config:
        MQTT destination settings (credentials, TLS toggle, keepalive).
    tls:
        Whether the broker URI asked for TLS.
    on_connection_lost:
        Called with a reason string when the broker drops the connection
        outside of an explicit ``disconnect``.
    client:
        Pre-built paho client (tests); one is created when omitted.
    """

    def __init__(
        self,
        config: MQTTConfig,
        *,
        tls: bool = False,
        on_connection_lost: Callable[[str], None] | None = None,
        client: mqtt.Client | None = None,
    ) -> None:
        self._timeout = config.timeout_seconds
        self._keepalive = config.keepalive_seconds
        self._on_connection_lost = on_connection_lost
        self._connack = threading.Event()
        self._connack_error: str | None = None
        self._closing = False

        self.client_id = new_client_id()
        self._client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.client_id,
        )
        if config.user and config.password:
            self._client.username_pw_set(config.user, config.password)
        if tls:
            if config.check_cert:
                self._client.tls_set()
            else:
                self._client.tls_set(cert_reqs=ssl.CERT_NONE)
                self._client.tls_insecure_set(True)
        self._client.on_connect = self._handle_connect
        self._client.on_disconnect = self._handle_disconnect

    # ------------------------------------------------------------------
    # Blocking API
    # ------------------------------------------------------------------

    def connect(self, host: str, port: int) -> None:
        """Open the connection and wait for the broker's CONNACK."""
        self._connack.clear()
        self._connack_error = None
        self._closing = False
        try:
            self._client.connect(host, port, keepalive=self._keepalive)
        except (OSError, ValueError) as exc:
            raise OutputConnectionError(f"connect {host}:{port}: {exc}") from exc

        self._client.loop_start()
        if not self._connack.wait(self._timeout):
            self._stop()
            raise OutputConnectionError(
                f"connect {host}:{port}: no CONNACK within {self._timeout}s"
            )
        if self._connack_error is not None:
            self._stop()
            raise OutputConnectionError(
                f"connect {host}:{port}: {self._connack_error}",
                status=self._connack_error,
            )

    def publish(self, topic: str, payload: str, qos: int, retain: bool) -> None:
        """Publish and wait until the message is handed off (QoS 0) or acked."""
        info = self._client.publish(topic, payload, qos=qos, retain=retain)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise DeliveryError(
                f"publish to {topic!r}: {mqtt.error_string(info.rc)}",
                status=mqtt.error_string(info.rc),
            )
        try:
            info.wait_for_publish(timeout=self._timeout)
        except (RuntimeError, ValueError) as exc:
            raise DeliveryError(f"publish to {topic!r}: {exc}") from exc
        if not info.is_published():
            raise DeliveryError(
                f"publish to {topic!r}: not acknowledged within {self._timeout}s"
            )

    def disconnect(self) -> None:
        self._closing = True
        try:
            self._client.disconnect()
        finally:
            self._stop()

    # ------------------------------------------------------------------
    # paho callbacks (network thread)
    # ------------------------------------------------------------------

    def _handle_connect(
        self,
        client: Any,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if getattr(reason_code, "is_failure", False):
            self._connack_error = str(reason_code)
        self._connack.set()

    def _handle_disconnect(
        self,
        client: Any,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        if self._closing:
            return
        if self._on_connection_lost is not None:
            self._on_connection_lost(str(reason_code))

    def _stop(self) -> None:
        self._client.loop_stop()


class MQTTOutput(OutputAdapter[MQTTConfig]):
    """Publishes each event's JSON form to the configured topic.

    Parameters
    ----------
    config, stats, metrics:
        See ``OutputAdapter``.
    transport:
        Broker client.  A ``MQTTTransport`` is built from the config when
        omitted (TLS is enabled for ``ssl://``, ``tls://`` and ``mqtts://``
        brokers).
    """

    name = "mqtt"

    def __init__(
        self,
        config: MQTTConfig,
        stats: Statistics,
        metrics: MetricsEmitter,
        *,
        transport: MQTTClientTransport | None = None,
    ) -> None:
        super().__init__(config, stats, metrics)
        self._state = ConnectionState.DISCONNECTED
        self._state_lock = threading.Lock()
        self._session_lock = threading.Lock()

        if transport is None:
            try:
                tls = parse_broker(config.broker).tls
            except AddressError:
                tls = False  # reported on first delivery
            transport = MQTTTransport(
                config, tls=tls, on_connection_lost=self.on_connection_lost
            )
        self._transport = transport

    @property
    def state(self) -> ConnectionState:
        with self._state_lock:
            return self._state

    def _set_state(self, state: ConnectionState) -> None:
        with self._state_lock:
            previous, self._state = self._state, state
        if previous is not state:
            logger.debug("%s - %s -> %s", self.name, previous.value, state.value)

    def on_connection_lost(self, reason: str) -> None:
        """Transport callback: the broker dropped the connection."""
        self._set_state(ConnectionState.CONNECTION_LOST)
        logger.error("%s - Connection lost: %s", self.name, reason)
        self._set_state(ConnectionState.DISCONNECTED)

    @contextmanager
    def _session(self, host: str, port: int) -> Iterator[None]:
        """Connect if needed; always disconnect after the body finishes."""
        if self.state is not ConnectionState.CONNECTED:
            self._set_state(ConnectionState.CONNECTING)
            try:
                self._transport.connect(host, port)
            except Exception:
                self._set_state(ConnectionState.DISCONNECTED)
                raise
            self._set_state(ConnectionState.CONNECTED)
        try:
            yield
        finally:
            try:
                self._transport.disconnect()
            except Exception as exc:  # noqa: BLE001
                logger.warning("%s - disconnect failed: %s", self.name, exc)
            self._set_state(ConnectionState.DISCONNECTED)

    def _send(self, event: SecurityEvent) -> None:
        address = parse_broker(self._config.broker)
        payload = event.to_json()

        with self._session_lock, self._session(address.host, address.port):
            self._set_state(ConnectionState.PUBLISHING)
            try:
                self._transport.publish(
                    self._config.topic,
                    payload,
                    self._config.qos,
                    self._config.retained,
                )
            finally:
                if self.state is ConnectionState.PUBLISHING:
                    self._set_state(ConnectionState.CONNECTED)

    @property
    def _success_message(self) -> str:
        return "Message published"

    def close(self) -> None:
        with self._session_lock:
            if self.state is ConnectionState.CONNECTED:
                self._transport.disconnect()
                self._set_state(ConnectionState.DISCONNECTED)
