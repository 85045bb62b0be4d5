"""Unit tests for the shared HTTP sender."""

from __future__ import annotations

import base64

import httpx
import pytest

from outpost.outputs.base import AddressError, DeliveryError, OutputConnectionError
from outpost.outputs.http import parse_endpoint


class TestParseEndpoint:
    def test_valid(self):
        url = parse_endpoint("https://es.example.com:9200/outpost/_doc")
        assert url.host == "es.example.com"
        assert url.port == 9200

    @pytest.mark.parametrize(
        "raw",
        [
            "es-host:9200/outpost/_doc",
            "ftp://es/outpost",
            "http:///outpost/_doc",
            "http://es:99999/outpost/_doc",
            "",
        ],
    )
    def test_invalid(self, raw):
        with pytest.raises(AddressError):
            parse_endpoint(raw)


class TestHttpSender:
    def test_post_sends_body_and_content_type(self, make_http):
        sender, handler = make_http()
        sender.post("http://es:9200/idx/_doc", '{"a":1}')

        request = handler.requests[0]
        assert request.method == "POST"
        assert request.content == b'{"a":1}'
        assert request.headers["Content-Type"].startswith("application/json")

    def test_basic_auth_attached(self, make_http):
        sender, handler = make_http()
        sender.basic_auth("elastic", "s3cret")
        sender.post("http://es:9200/idx/_doc", "{}")

        expected = base64.b64encode(b"elastic:s3cret").decode()
        assert handler.requests[0].headers["Authorization"] == f"Basic {expected}"

    def test_no_auth_by_default(self, make_http):
        sender, handler = make_http()
        sender.post("http://es:9200/idx/_doc", "{}")
        assert "Authorization" not in handler.requests[0].headers

    def test_custom_headers_preserved_with_auth(self, make_http):
        sender, handler = make_http()
        sender.add_header("X-Tenant", "blue")
        sender.basic_auth("elastic", "s3cret")
        sender.post("http://es:9200/idx/_doc", "{}")

        headers = handler.requests[0].headers
        assert headers["X-Tenant"] == "blue"
        assert headers.get_list("Authorization") == [headers["Authorization"]]

    def test_put(self, make_http):
        sender, handler = make_http(status_code=200)
        sender.put("http://hooks/outpost", "{}")
        assert handler.requests[0].method == "PUT"

    @pytest.mark.parametrize("status_code", [200, 201, 202, 204])
    def test_success_statuses(self, make_http, status_code):
        sender, _ = make_http(status_code=status_code)
        response = sender.post("http://es:9200/idx/_doc", "{}")
        assert response.status_code == status_code

    @pytest.mark.parametrize(
        ("status_code", "reason"),
        [
            (400, "bad request"),
            (401, "unauthorized"),
            (403, "forbidden"),
            (404, "not found"),
            (422, "unprocessable entity"),
            (429, "rate limited"),
            (500, "unexpected response"),
            (302, "unexpected response"),
        ],
    )
    def test_error_statuses(self, make_http, status_code, reason):
        sender, _ = make_http(status_code=status_code)
        with pytest.raises(DeliveryError, match=reason) as excinfo:
            sender.post("http://es:9200/idx/_doc", "{}")
        assert excinfo.value.status == str(status_code)

    def test_connect_error_mapped(self, make_http):
        sender, _ = make_http(error=httpx.ConnectError("connection refused"))
        with pytest.raises(OutputConnectionError, match="connection refused"):
            sender.post("http://es:9200/idx/_doc", "{}")

    def test_timeout_mapped(self, make_http):
        sender, _ = make_http(error=httpx.ReadTimeout("timed out"))
        with pytest.raises(OutputConnectionError):
            sender.post("http://es:9200/idx/_doc", "{}")

    def test_other_transport_error_mapped(self, make_http):
        sender, _ = make_http(error=httpx.RemoteProtocolError("peer closed"))
        with pytest.raises(DeliveryError, match="peer closed"):
            sender.post("http://es:9200/idx/_doc", "{}")

    def test_custom_authorization_header_wins_over_basic_auth(self, make_http):
        sender, handler = make_http()
        sender.basic_auth("elastic", "s3cret")
        sender.add_header("Authorization", "ApiKey XYZ")
        sender.post("http://es:9200/idx/_doc", "{}")

        assert handler.requests[0].headers.get_list("Authorization") == ["ApiKey XYZ"]

    def test_lowercase_authorization_header_also_wins(self, make_http):
        sender, handler = make_http()
        sender.add_header("authorization", "Bearer token")
        sender.basic_auth("elastic", "s3cret")
        sender.post("http://es:9200/idx/_doc", "{}")

        assert handler.requests[0].headers.get_list("Authorization") == ["Bearer token"]
