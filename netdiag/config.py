"""Runtime settings read from NETDIAG_* environment variables."""

import logging
import os
from dataclasses import dataclass
from typing import Mapping

logger = logging.getLogger(__name__)

TRANSPORT_HTTP = "http"
TRANSPORT_FAKE = "fake"


@dataclass
class Settings:
    """Application settings.

    Environment Variables:
        NETDIAG_TARGET: Base URL of the diagnostic service
        NETDIAG_TRANSPORT: "http" (default) or "fake" for simulated results
        NETDIAG_HTTP_TIMEOUT: Socket timeout in seconds
        NETDIAG_OPERATION_TIMEOUT_MS: Force Failure after N ms Running (0 disables)
        NETDIAG_SPEED_DURATION: Default speed test duration in seconds
        NETDIAG_PORT_RANGE: Default port range expression
    """

    target: str = "http://127.0.0.1:3000"
    transport: str = TRANSPORT_HTTP
    http_timeout_seconds: float = 120.0
    operation_timeout_ms: int = 0
    speed_duration: int = 10
    port_range: str = "1-1024"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from the environment, keeping defaults for bad values."""
        env = os.environ if environ is None else environ
        defaults = cls()

        transport = env.get("NETDIAG_TRANSPORT", defaults.transport).strip().lower()
        if transport not in (TRANSPORT_HTTP, TRANSPORT_FAKE):
            logger.warning("Unknown NETDIAG_TRANSPORT=%r, using %s", transport, defaults.transport)
            transport = defaults.transport

        target = env.get("NETDIAG_TARGET", "").strip() or defaults.target

        return cls(
            target=target,
            transport=transport,
            http_timeout_seconds=_positive(
                env, "NETDIAG_HTTP_TIMEOUT", float, defaults.http_timeout_seconds
            ),
            operation_timeout_ms=_non_negative(
                env, "NETDIAG_OPERATION_TIMEOUT_MS", defaults.operation_timeout_ms
            ),
            speed_duration=_positive(env, "NETDIAG_SPEED_DURATION", int, defaults.speed_duration),
            port_range=env.get("NETDIAG_PORT_RANGE", "").strip() or defaults.port_range,
        )

    @property
    def use_fake_transport(self) -> bool:
        return self.transport == TRANSPORT_FAKE


def _positive(env: Mapping[str, str], name: str, convert, default):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = convert(raw.strip())
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value <= 0:
        logger.warning("Invalid %s=%r (must be positive), using default %s", name, raw, default)
        return default
    return value


def _non_negative(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logger.warning("Invalid %s=%r, using default %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Invalid %s=%r (must not be negative), using default %s", name, raw, default)
        return default
    return value
