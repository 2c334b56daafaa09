"""Tests for HttpTransport error mapping and FakeTransport output shapes."""

import io
import json
import socket
import urllib.error

import pytest
from netdiag import transport as transport_module
from netdiag.errors import TransportError
from netdiag.operations import (
    parse_ping_response,
    parse_port_scan_response,
    parse_speed_test_response,
)
from netdiag.transport import FakeTransport, HttpTransport


class FakeResponse:
    """Minimal stand-in for the object returned by urlopen()."""

    def __init__(self, body: bytes, status: int = 200):
        self._body = body
        self.status = status

    def read(self):
        return self._body

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False


@pytest.fixture
def captured(monkeypatch):
    """Patch urlopen; tests set captured['outcome'] to a FakeResponse or exception."""
    state = {"requests": [], "outcome": FakeResponse(b"{}")}

    def fake_urlopen(req, timeout=None):
        state["requests"].append((req, timeout))
        outcome = state["outcome"]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    monkeypatch.setattr(transport_module.urllib.request, "urlopen", fake_urlopen)
    return state


class TestHttpTransportInit:
    """Test HttpTransport configuration."""

    def test_trailing_slash_removed(self):
        transport = HttpTransport("http://example.test:3000/")
        assert transport.base_url == "http://example.test:3000"

    def test_invalid_timeout(self):
        with pytest.raises(ValueError, match="timeout_seconds must be positive"):
            HttpTransport("http://example.test", timeout_seconds=0)

    def test_empty_base_url(self):
        with pytest.raises(ValueError, match="base_url cannot be empty"):
            HttpTransport("  ")


class TestHttpTransportRequests:
    """Test request construction and response handling."""

    def test_build_get_request(self):
        req = HttpTransport("http://example.test:3000").build_request("/api/ping", "GET")

        assert req.full_url == "http://example.test:3000/api/ping"
        assert req.get_method() == "GET"
        assert req.data is None

    def test_build_post_request(self):
        req = HttpTransport("http://example.test").build_request("/api/speed", "post", {"duration": 5})

        assert req.get_method() == "POST"
        assert json.loads(req.data.decode("utf-8")) == {"duration": 5}
        assert req.get_header("Content-type") == "application/json"

    def test_success_body_decoded(self, captured):
        captured["outcome"] = FakeResponse(b'{"duration_ms": 42}')
        transport = HttpTransport("http://example.test", timeout_seconds=7.5)

        body = transport.request("/api/ping", "GET")

        assert body == {"duration_ms": 42}
        req, timeout = captured["requests"][0]
        assert req.full_url == "http://example.test/api/ping"
        assert timeout == 7.5

    def test_status_text_when_body_empty(self, captured):
        """Test an empty error body degrades to the HTTP reason phrase."""
        captured["outcome"] = urllib.error.HTTPError(
            "http://example.test/api/speed", 503, "Service Unavailable", None, io.BytesIO(b"")
        )

        with pytest.raises(TransportError) as exc_info:
            HttpTransport("http://example.test").request("/api/speed", "POST", {"duration": 1})

        assert str(exc_info.value) == "Service Unavailable"

    def test_server_message_preferred(self, captured):
        captured["outcome"] = urllib.error.HTTPError(
            "http://example.test/api/ports",
            500,
            "Internal Server Error",
            None,
            io.BytesIO(b"Connection refused (os error 111)\n"),
        )

        with pytest.raises(TransportError, match=r"^Connection refused \(os error 111\)$"):
            HttpTransport("http://example.test").request("/api/ports", "POST", {"range": "1-2"})

    def test_connection_failure(self, captured):
        captured["outcome"] = urllib.error.URLError(ConnectionRefusedError(111, "Connection refused"))

        with pytest.raises(TransportError, match="^Connection failed"):
            HttpTransport("http://example.test").request("/api/ping", "GET")

    def test_timeout(self, captured):
        captured["outcome"] = socket.timeout("timed out")

        with pytest.raises(TransportError, match="Request timed out"):
            HttpTransport("http://example.test").request("/api/ping", "GET")

    def test_ping_uses_configured_timeout(self, captured):
        captured["outcome"] = FakeResponse(b'{"duration_ms": 5}')

        HttpTransport("http://example.test", timeout_seconds=1).request("/api/ping", "GET")

        assert captured["requests"][0][1] == 1

    def test_speed_test_timeout_covers_requested_duration(self, captured, monkeypatch):
        """Test a speed test longer than the socket timeout still completes."""
        body = b'{"total_bytes": 1, "duration_secs": 200.0, "mbps": 0.01}'

        def slow_urlopen(req, timeout=None):
            captured["requests"].append((req, timeout))
            # The service replies only after measuring for the full duration
            if timeout <= json.loads(req.data)["duration"]:
                raise socket.timeout("timed out")
            return FakeResponse(body)

        transport = HttpTransport("http://example.test", timeout_seconds=1)
        monkeypatch.setattr(transport_module.urllib.request, "urlopen", slow_urlopen)
        result = transport.request("/api/speed", "POST", {"duration": 200})

        assert result["duration_secs"] == 200.0
        assert captured["requests"][0][1] == 201

    def test_request_timeout_ignores_non_numeric_duration(self):
        transport = HttpTransport("http://example.test", timeout_seconds=5)

        assert transport.request_timeout(None) == 5
        assert transport.request_timeout({"range": "1-10"}) == 5
        assert transport.request_timeout({"duration": True}) == 5
        assert transport.request_timeout({"duration": "10"}) == 5
        assert transport.request_timeout({"duration": 10}) == 15

    def test_malformed_body(self, captured):
        captured["outcome"] = FakeResponse(b"<html>oops</html>")

        with pytest.raises(TransportError, match="Malformed response body"):
            HttpTransport("http://example.test").request("/api/ping", "GET")

    def test_non_object_body(self, captured):
        captured["outcome"] = FakeResponse(b"[1, 2, 3]")

        with pytest.raises(TransportError, match="Malformed response body"):
            HttpTransport("http://example.test").request("/api/ping", "GET")


class TestFakeTransport:
    """Test FakeTransport produces contract-shaped bodies."""

    def test_ping_shape(self):
        body = FakeTransport(seed=1).request("/api/ping", "GET")
        assert parse_ping_response(body).duration_ms >= 1

    def test_speed_test_shape(self):
        body = FakeTransport(seed=2).request("/api/speed", "POST", {"duration": 3})
        result = parse_speed_test_response(body)

        assert result.total_bytes > 0
        assert 3.0 <= result.duration_secs < 3.1
        assert result.mbps > 0

    def test_speed_test_rejects_bad_duration(self):
        with pytest.raises(TransportError):
            FakeTransport().request("/api/speed", "POST", {"duration": "ten"})

    def test_port_scan_shape(self):
        body = FakeTransport(seed=3).request("/api/ports", "POST", {"range": "1-100"})
        result = parse_port_scan_response(body)

        assert result.total_ports == 100
        assert result.success_count + result.fail_count == 100
        assert len(result.open_ports) == result.success_count
        assert all(1 <= port <= 100 for port in result.open_ports)

    def test_port_scan_bad_range(self):
        with pytest.raises(TransportError):
            FakeTransport().request("/api/ports", "POST", {"range": "a-b"})

    def test_deterministic_with_seed(self):
        first = FakeTransport(seed=42).request("/api/ports", "POST", {"range": "1-500"})
        second = FakeTransport(seed=42).request("/api/ports", "POST", {"range": "1-500"})
        assert first == second

    def test_unknown_endpoint(self):
        with pytest.raises(TransportError, match="Not Found"):
            FakeTransport().request("/api/unknown", "GET")
