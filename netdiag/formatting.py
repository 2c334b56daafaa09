"""Display text for settled operation states."""

import math
from decimal import ROUND_HALF_UP, Decimal

from netdiag.models import (
    OperationState,
    Phase,
    PingResult,
    PortScanResult,
    SpeedTestResult,
)

BYTE_UNITS = ["Bytes", "KB", "MB", "GB", "TB"]


def _to_fixed(value: float, places: int) -> str:
    """Fixed-point text with ties rounded away from zero."""
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def _strip_zeros(text: str) -> str:
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def _format_number(value: float) -> str:
    """Render a number without a trailing '.0' for whole values."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_bytes(num_bytes, decimals: int = 2) -> str:
    """Convert a byte count to a human readable size.

    Args:
        num_bytes: Byte count (zero, None and NaN all render as "0 Bytes")
        decimals: Decimal places to keep, negative values act as 0

    Returns:
        Text such as "1.5 KB"; trailing zeros are dropped ("1 KB", not "1.00 KB")

    Raises:
        ValueError: If num_bytes is negative

    Examples:
        >>> format_bytes(1536)
        '1.5 KB'
        >>> format_bytes(1048576)
        '1 MB'
    """
    try:
        value = float(num_bytes) if num_bytes is not None else 0.0
    except (TypeError, ValueError):
        value = 0.0

    if not value or math.isnan(value):
        return "0 Bytes"
    if value < 0:
        raise ValueError(f"Byte count must not be negative: {num_bytes}")

    places = max(0, decimals)
    index = math.floor(math.log(value) / math.log(1024))
    index = min(max(index, 0), len(BYTE_UNITS) - 1)

    # log() can land just below an exact power of 1024
    while index + 1 < len(BYTE_UNITS) and value >= 1024 ** (index + 1):
        index += 1
    while index > 0 and value < 1024**index:
        index -= 1

    scaled = value / (1024**index)
    return f"{_strip_zeros(_to_fixed(scaled, places))} {BYTE_UNITS[index]}"


def format_ping(result: PingResult) -> str:
    return f"Pong! RTT: {_format_number(result.duration_ms)}ms"


def format_speed_test(result: SpeedTestResult) -> str:
    return (
        "Speed Test Finished:\n"
        f"Total Received: {format_bytes(result.total_bytes)}\n"
        f"Duration: {_to_fixed(result.duration_secs, 2)}s\n"
        f"Speed: {_to_fixed(result.mbps, 2)} Mbps"
    )


def format_port_scan(result: PortScanResult) -> str:
    open_ports = ", ".join(str(port) for port in result.open_ports)
    return (
        "Port Test Complete:\n"
        f"Total Ports: {result.total_ports}\n"
        f"Success: {result.success_count}\n"
        f"Failed: {result.fail_count}\n"
        f"Open Ports: {open_ports}"
    )


def format_error(message: str) -> str:
    # Single line only
    first_line = message.strip().splitlines()[0] if message.strip() else "Unknown error"
    return f"Error: {first_line}"


_RESULT_FORMATTERS = {
    PingResult: format_ping,
    SpeedTestResult: format_speed_test,
    PortScanResult: format_port_scan,
}


def format_result(state: OperationState) -> str | None:
    """Map a settled state to display text.

    Returns None for IDLE and RUNNING states, which have nothing to show.
    """
    if state.phase is Phase.FAILURE:
        return format_error(state.error_message)

    if state.phase is Phase.SUCCESS:
        formatter = _RESULT_FORMATTERS[type(state.result)]
        return formatter(state.result)

    return None


def format_status(state: OperationState) -> str:
    """Short status line for an operation."""
    if state.phase is Phase.RUNNING:
        return "Running..."
    if state.phase is Phase.SUCCESS:
        return "Done"
    if state.phase is Phase.FAILURE:
        return "Failed"
    return ""
