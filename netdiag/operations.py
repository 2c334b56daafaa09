"""Operation descriptor table: endpoints, input parsing and response shapes."""

import math
from dataclasses import dataclass
from typing import Any, Callable

from netdiag.errors import ShapeError, ValidationError
from netdiag.models import OperationKind, PingResult, PortScanResult, SpeedTestResult

MIN_PORT = 1
MAX_PORT = 65535


def parse_duration(raw: Any) -> int:
    """Parse a speed test duration in whole seconds.

    Args:
        raw: User input, typically the text of a spin box or a CLI flag

    Returns:
        Duration in seconds (>= 1)

    Raises:
        ValidationError: If the value is not a positive whole number
    """
    if isinstance(raw, bool):
        raise ValidationError(f"Invalid duration: {raw!r}")

    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip() if raw is not None else ""
        if not text:
            raise ValidationError("Duration is required")
        try:
            value = int(text)
        except ValueError:
            raise ValidationError(f"Invalid duration: {text!r} is not a whole number") from None

    if value < 1:
        raise ValidationError(f"Invalid duration: {value} (must be at least 1 second)")
    return value


def parse_port_range(raw: Any) -> list[int]:
    """Expand a port range expression into a list of ports.

    Accepts comma-separated entries, each either a single port ("22") or an
    inclusive range ("20-25"). Whitespace around entries is ignored.

    Examples:
        >>> parse_port_range("20-25")
        [20, 21, 22, 23, 24, 25]
        >>> parse_port_range("22, 80,443")
        [22, 80, 443]

    Raises:
        ValidationError: On empty input, non-numeric ports, ports outside
            1-65535, or a range whose start is greater than its end
    """
    text = str(raw).strip() if raw is not None else ""
    if not text:
        raise ValidationError("Port range is required")

    ports = []
    for part in text.split(","):
        part = part.strip()
        if not part:
            raise ValidationError(f"Invalid port range: {text!r} (empty entry)")

        if "-" in part:
            bounds = part.split("-")
            if len(bounds) != 2:
                raise ValidationError(f"Invalid port range entry: {part!r}")
            start = _parse_port(bounds[0], part)
            end = _parse_port(bounds[1], part)
            if start > end:
                raise ValidationError(f"Invalid port range entry: {part!r} (start is greater than end)")
            ports.extend(range(start, end + 1))
        else:
            ports.append(_parse_port(part, part))

    return ports


def _parse_port(text: str, entry: str) -> int:
    text = text.strip()
    if not text.isdigit():
        raise ValidationError(f"Invalid port range entry: {entry!r}")
    port = int(text)
    if not MIN_PORT <= port <= MAX_PORT:
        raise ValidationError(f"Port out of range: {port} (expected {MIN_PORT}-{MAX_PORT})")
    return port


def _require(body: dict, name: str) -> Any:
    if name not in body or body[name] is None:
        raise ShapeError(f"missing field '{name}'")
    return body[name]


def _require_int(body: dict, name: str) -> int:
    value = _require(body, name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ShapeError(f"field '{name}' must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ShapeError(f"field '{name}' must not be negative")
    return value


def _require_number(body: dict, name: str) -> float:
    value = _require(body, name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ShapeError(f"field '{name}' must be a number, got {type(value).__name__}")
    if isinstance(value, float) and not math.isfinite(value):
        raise ShapeError(f"field '{name}' must be finite")
    return value


def _check_body(body: Any) -> dict:
    if not isinstance(body, dict):
        raise ShapeError(f"expected a JSON object, got {type(body).__name__}")
    return body


def parse_ping_response(body: Any) -> PingResult:
    body = _check_body(body)
    return PingResult(duration_ms=_require_number(body, "duration_ms"))


def parse_speed_test_response(body: Any) -> SpeedTestResult:
    body = _check_body(body)
    return SpeedTestResult(
        total_bytes=_require_int(body, "total_bytes"),
        duration_secs=_require_number(body, "duration_secs"),
        mbps=_require_number(body, "mbps"),
    )


def parse_port_scan_response(body: Any) -> PortScanResult:
    body = _check_body(body)
    open_ports = _require(body, "open_ports")
    if not isinstance(open_ports, list):
        raise ShapeError(f"field 'open_ports' must be a list, got {type(open_ports).__name__}")
    for port in open_ports:
        if isinstance(port, bool) or not isinstance(port, int):
            raise ShapeError(f"field 'open_ports' contains a non-integer value: {port!r}")

    return PortScanResult(
        total_ports=_require_int(body, "total_ports"),
        success_count=_require_int(body, "success_count"),
        fail_count=_require_int(body, "fail_count"),
        open_ports=tuple(open_ports),
    )


@dataclass(frozen=True)
class OperationDescriptor:
    """Static metadata for one operation kind."""

    kind: OperationKind
    label: str
    endpoint: str
    method: str
    requires_input: bool
    input_parser: Callable[[Any], dict] | None
    response_parser: Callable[[Any], Any]

    def parse_input(self, raw: Any) -> dict | None:
        """Build the request payload from raw trigger input.

        Raises:
            ValidationError: If the input is required and malformed
        """
        if not self.requires_input:
            return None
        return self.input_parser(raw)

    def parse_response(self, body: Any):
        """Parse a success body into the kind's result payload.

        Raises:
            ShapeError: If required fields are missing or malformed
        """
        return self.response_parser(body)


def _speed_test_payload(raw: Any) -> dict:
    return {"duration": parse_duration(raw)}


def _port_scan_payload(raw: Any) -> dict:
    # Validate locally, but send the expression as typed
    parse_port_range(raw)
    return {"range": str(raw).strip()}


DESCRIPTORS = {
    OperationKind.PING: OperationDescriptor(
        kind=OperationKind.PING,
        label="Run Ping",
        endpoint="/api/ping",
        method="GET",
        requires_input=False,
        input_parser=None,
        response_parser=parse_ping_response,
    ),
    OperationKind.SPEED_TEST: OperationDescriptor(
        kind=OperationKind.SPEED_TEST,
        label="Run Speed Test",
        endpoint="/api/speed",
        method="POST",
        requires_input=True,
        input_parser=_speed_test_payload,
        response_parser=parse_speed_test_response,
    ),
    OperationKind.PORT_SCAN: OperationDescriptor(
        kind=OperationKind.PORT_SCAN,
        label="Run Port Test",
        endpoint="/api/ports",
        method="POST",
        requires_input=True,
        input_parser=_port_scan_payload,
        response_parser=parse_port_scan_response,
    ),
}


def get_descriptor(kind: OperationKind) -> OperationDescriptor:
    """Look up the descriptor for an operation kind."""
    return DESCRIPTORS[kind]
