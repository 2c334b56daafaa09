"""Data models for NetDiag operations."""

from dataclasses import dataclass, field, replace
from enum import Enum


class OperationKind(Enum):
    """The three diagnostics a user can trigger."""

    PING = "ping"
    SPEED_TEST = "speed_test"
    PORT_SCAN = "port_scan"


class Phase(Enum):
    """Lifecycle phase of a single operation."""

    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def is_settled(self) -> bool:
        return self in (Phase.SUCCESS, Phase.FAILURE)


@dataclass(frozen=True)
class PingResult:
    """Round-trip time reported by the service."""

    duration_ms: float


@dataclass(frozen=True)
class SpeedTestResult:
    """Throughput measurement reported by the service."""

    total_bytes: int
    duration_secs: float
    mbps: float


@dataclass(frozen=True)
class PortScanResult:
    """Port reachability sweep reported by the service."""

    total_ports: int
    success_count: int
    fail_count: int
    open_ports: tuple[int, ...] = field(default_factory=tuple)


OperationResult = PingResult | SpeedTestResult | PortScanResult


@dataclass
class OperationState:
    """Live state of one operation, owned by its state machine."""

    kind: OperationKind
    phase: Phase = Phase.IDLE
    result: OperationResult | None = None
    error_message: str | None = None

    def __post_init__(self):
        """Reject states where result/error do not match the phase."""
        self.check_consistency()

    def check_consistency(self) -> None:
        """Raise ValueError unless exactly the phase's field is populated.

        - SUCCESS carries a result and no error message
        - FAILURE carries an error message and no result
        - IDLE and RUNNING carry neither
        """
        has_result = self.result is not None
        has_error = self.error_message is not None

        if self.phase is Phase.SUCCESS:
            valid = has_result and not has_error
        elif self.phase is Phase.FAILURE:
            valid = has_error and not has_result
        else:
            valid = not has_result and not has_error

        if not valid:
            raise ValueError(
                f"Inconsistent {self.kind.value} state: phase={self.phase.value}, "
                f"result={'set' if has_result else 'unset'}, "
                f"error_message={'set' if has_error else 'unset'}"
            )

    @property
    def is_running(self) -> bool:
        return self.phase is Phase.RUNNING

    @property
    def is_settled(self) -> bool:
        return self.phase.is_settled

    def snapshot(self) -> "OperationState":
        """Return an independent copy for observers."""
        return replace(self)
