"""Transport abstraction for talking to the remote diagnostic service."""

import json
import logging
import random
import socket
import urllib.error
import urllib.request
from typing import Protocol

from netdiag.errors import TransportError, ValidationError
from netdiag.operations import parse_port_range

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Protocol defining the interface for diagnostic transports."""

    def request(self, endpoint: str, method: str, payload: dict | None = None) -> dict:
        """Perform one call and return the decoded success body.

        Raises:
            TransportError: On network failure or a non-success response
        """
        ...


class HttpTransport:
    """Transport that speaks JSON over HTTP to the diagnostic web service.

    Failure mapping:
    - Non-2xx status: the response body text if non-empty, otherwise the
      HTTP reason phrase (e.g. "Service Unavailable")
    - Connection errors and timeouts: the underlying reason
    - Success bodies that are not a JSON object: "Malformed response body"
    """

    def __init__(self, base_url: str = "http://127.0.0.1:3000", timeout_seconds: float = 120.0):
        """Initialize HTTP transport.

        Args:
            base_url: Scheme, host and port of the service
            timeout_seconds: Socket timeout applied to each request, extended by
                the requested duration for speed tests
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if not base_url or not base_url.strip():
            raise ValueError("base_url cannot be empty")

        self.base_url = base_url.strip().rstrip("/")
        self.timeout_seconds = timeout_seconds

        logger.debug(
            "HttpTransport initialized: base_url=%s, timeout=%.1fs",
            self.base_url,
            self.timeout_seconds,
        )

    def build_request(self, endpoint: str, method: str, payload: dict | None = None) -> urllib.request.Request:
        """Build the urllib request for an endpoint."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {"Accept": "application/json"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        return urllib.request.Request(url, data=data, headers=headers, method=method.upper())

    def request_timeout(self, payload: dict | None = None) -> float:
        """Socket timeout for one call.

        The speed test service replies only after measuring for the requested
        duration, so that duration is added to the configured timeout.
        """
        duration = (payload or {}).get("duration")
        if isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration > 0:
            return self.timeout_seconds + duration
        return self.timeout_seconds

    def request(self, endpoint: str, method: str, payload: dict | None = None) -> dict:
        req = self.build_request(endpoint, method, payload)
        timeout = self.request_timeout(payload)
        logger.debug("HTTP %s %s payload=%s", req.get_method(), req.full_url, payload)

        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                raw = resp.read()
                status = resp.status
        except urllib.error.HTTPError as exc:
            message = self._error_message(exc)
            logger.warning("HTTP %s %s failed: status=%d, message=%s", req.get_method(), req.full_url, exc.code, message)
            raise TransportError(message) from exc
        except urllib.error.URLError as exc:
            logger.warning("HTTP %s %s unreachable: %s", req.get_method(), req.full_url, exc.reason)
            raise TransportError(f"Connection failed: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            logger.warning("HTTP %s %s timed out after %.1fs", req.get_method(), req.full_url, timeout)
            raise TransportError("Request timed out") from exc
        except OSError as exc:
            logger.warning("HTTP %s %s error: %s", req.get_method(), req.full_url, exc)
            raise TransportError(str(exc) or type(exc).__name__) from exc

        logger.debug("HTTP %s %s completed: status=%d, bytes=%d", req.get_method(), req.full_url, status, len(raw))

        try:
            body = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Malformed response body: preview=%r", raw[:100])
            raise TransportError("Malformed response body") from exc

        if not isinstance(body, dict):
            raise TransportError("Malformed response body")
        return body

    @staticmethod
    def _error_message(exc: urllib.error.HTTPError) -> str:
        """Body text if present, otherwise the status description."""
        text = ""
        if exc.fp is not None:
            try:
                raw = exc.read()
            except OSError:
                raw = b""
            if raw:
                text = raw.decode("utf-8", errors="replace").strip()

        if text:
            return text
        if exc.reason:
            return str(exc.reason)
        return f"HTTP {exc.code}"


class FakeTransport:
    """Simulated diagnostic service for demos and testing.

    Returns contract-shaped bodies without touching the network. A seed makes
    the generated values deterministic.
    """

    def __init__(self, seed: int | None = None):
        """Initialize with optional random seed for deterministic behavior."""
        self._random = random.Random(seed)

        # Simulation parameters
        self.base_rtt_ms = 25
        self.rtt_variance_ms = 5
        self.base_mbps = 200.0
        self.open_port_probability = 0.05

    def request(self, endpoint: str, method: str, payload: dict | None = None) -> dict:
        path = "/" + endpoint.lstrip("/")
        if path == "/api/ping":
            return self._ping()
        if path == "/api/speed":
            return self._speed_test(payload or {})
        if path == "/api/ports":
            return self._port_scan(payload or {})
        raise TransportError(f"Not Found: {path}")

    def _ping(self) -> dict:
        rtt = max(1, round(self._random.gauss(self.base_rtt_ms, self.rtt_variance_ms)))
        return {"duration_ms": rtt}

    def _speed_test(self, payload: dict) -> dict:
        duration = payload.get("duration")
        if not isinstance(duration, int) or duration < 1:
            raise TransportError("Unprocessable Entity")

        mbps = max(1.0, self._random.gauss(self.base_mbps, self.base_mbps * 0.1))
        total_bytes = int(mbps * 1_000_000 * duration / 8)
        duration_secs = duration + self._random.random() * 0.05
        return {
            "total_bytes": total_bytes,
            "duration_secs": duration_secs,
            "mbps": (total_bytes * 8.0) / (1_000_000.0 * duration_secs),
        }

    def _port_scan(self, payload: dict) -> dict:
        try:
            ports = parse_port_range(payload.get("range"))
        except ValidationError as exc:
            raise TransportError(str(exc)) from exc

        open_ports = [port for port in ports if self._random.random() < self.open_port_probability]
        return {
            "total_ports": len(ports),
            "success_count": len(open_ports),
            "fail_count": len(ports) - len(open_ports),
            "open_ports": open_ports,
        }
