"""Shared HTTP sender for HTTP-style outputs.

``HttpSender`` wraps one long-lived ``httpx.Client`` per output.  It keeps
a mutable set of default headers and optional basic-auth credentials that
outputs attach before each send.  Those mutations, and the snapshot taken
just before a request, are guarded by a lock held only for the mutation;
the network call itself runs outside the lock so concurrent sends from
the same output are not serialized.

Response handling follows the status mapping below.  Anything outside
``SUCCESS_STATUSES`` raises ``DeliveryError``; transport failures raise
``OutputConnectionError`` (connect/timeout) or ``DeliveryError``.
"""

from __future__ import annotations

import logging
import threading

import httpx

from outpost.outputs.base import AddressError, DeliveryError, OutputConnectionError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/json; charset=utf-8"
USER_AGENT = "outpost"

SUCCESS_STATUSES: frozenset[int] = frozenset({200, 201, 202, 204})

_STATUS_MESSAGES: dict[int, str] = {
    400: "bad request",
    401: "unauthorized",
    403: "forbidden",
    404: "not found",
    422: "bad request: unprocessable entity",
    429: "rate limited: too many requests",
}


def parse_endpoint(raw: str) -> httpx.URL:
    """Parse and validate an absolute http(s) URL.

    Raises
    ------
    AddressError
        If the URL is malformed, not http(s), has no host, or its port is
        outside 1-65535.
    """
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, ValueError, TypeError) as exc:
        raise AddressError(f"invalid endpoint {raw!r}: {exc}") from exc
    if url.scheme not in ("http", "https"):
        raise AddressError(f"invalid endpoint {raw!r}: scheme must be http or https")
    if not url.host:
        raise AddressError(f"invalid endpoint {raw!r}: missing host")
    if url.port is not None and not 0 < url.port < 65536:
        raise AddressError(f"invalid endpoint {raw!r}: port {url.port} out of range")
    return url


class HttpSender:
    """Long-lived HTTP client with lock-guarded headers and credentials.

    Parameters
    ----------
    verify:
        Verify TLS certificates.
    timeout_seconds:
        Per-request timeout handed to httpx.
    transport:
        Optional httpx transport (e.g. ``httpx.MockTransport`` in tests).
    """

    def __init__(
        self,
        *,
        verify: bool = True,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            verify=verify,
            timeout=timeout_seconds,
            transport=transport,
            headers={"User-Agent": USER_AGENT},
        )
        self._lock = threading.Lock()
        self._headers: dict[str, str] = {"Content-Type": DEFAULT_CONTENT_TYPE}
        self._auth: tuple[str, str] | None = None

    # ------------------------------------------------------------------
    # Request options
    # ------------------------------------------------------------------

    def basic_auth(self, username: str, password: str) -> None:
        """Attach basic-auth credentials to subsequent requests."""
        with self._lock:
            self._auth = (username, password)

    def add_header(self, name: str, value: str) -> None:
        """Set a default header for subsequent requests."""
        with self._lock:
            self._headers[name] = value

    @property
    def headers(self) -> dict[str, str]:
        with self._lock:
            return dict(self._headers)

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    def post(self, url: httpx.URL | str, body: str) -> httpx.Response:
        return self.request("POST", url, body)

    def put(self, url: httpx.URL | str, body: str) -> httpx.Response:
        return self.request("PUT", url, body)

    def request(self, method: str, url: httpx.URL | str, body: str) -> httpx.Response:
        """Send *body* and map the response to success or an ``OutputError``.

        A custom ``Authorization`` header set through ``add_header`` takes
        precedence: basic-auth credentials are not applied on top of it.
        """
        with self._lock:
            headers = dict(self._headers)
            auth = httpx.BasicAuth(*self._auth) if self._auth else None
        if auth is not None and any(h.lower() == "authorization" for h in headers):
            logger.debug("%s %s: custom Authorization header wins over basic auth", method, url)
            auth = None

        try:
            response = self._client.request(
                method,
                url,
                content=body.encode("utf-8"),
                headers=headers,
                auth=auth if auth is not None else httpx.USE_CLIENT_DEFAULT,
            )
        except (httpx.ConnectError, httpx.TimeoutException) as exc:
            raise OutputConnectionError(f"{method} {url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise DeliveryError(f"{method} {url}: {exc}") from exc

        if response.status_code not in SUCCESS_STATUSES:
            reason = _STATUS_MESSAGES.get(response.status_code, "unexpected response")
            raise DeliveryError(
                f"{reason} (status {response.status_code})",
                status=str(response.status_code),
            )

        logger.debug("%s %s -> %d", method, url, response.status_code)
        return response

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> HttpSender:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
