"""Diagnostic run controller: one state machine per operation kind."""

import logging
from typing import Callable

from PySide6.QtCore import QObject, QThreadPool, Signal

from netdiag.models import OperationKind, OperationState
from netdiag.operations import DESCRIPTORS, OperationDescriptor
from netdiag.state_machine import OperationStateMachine
from netdiag.transport import Transport
from netdiag.workers import WORKERS_PER_OPERATION, create_worker_pool, ensure_worker_capacity

logger = logging.getLogger(__name__)

DisplayCallback = Callable[[OperationKind, OperationState], None]


class DiagnosticRunController(QObject):
    """Facade that routes triggers to per-kind state machines.

    Each operation kind gets exactly one state machine for the lifetime of
    the controller. Kinds are independent: Ping, SpeedTest and PortScan may
    all be Running at the same time, and their results may arrive in any
    order.

    Every transition is forwarded to the display callback (if set) and to
    the state_changed signal.
    """

    # Signals
    state_changed = Signal(object, object)  # (OperationKind, OperationState)

    def __init__(
        self,
        transport: Transport,
        display_callback: DisplayCallback | None = None,
        timeout_ms: int = 0,
        thread_pool: QThreadPool | None = None,
        parent=None,
    ):
        """Initialize controller and its state machines.

        Args:
            transport: Transport shared by all operations
            display_callback: Called with (kind, state) on every transition
            timeout_ms: Per-request timeout forwarded to each machine (0 disables)
            thread_pool: Pool for request workers (default: a dedicated pool).
                Its thread limit is raised so every operation can run at once.
            parent: Qt parent object
        """
        super().__init__(parent)

        self.transport = transport
        min_threads = len(DESCRIPTORS) * WORKERS_PER_OPERATION
        if thread_pool is None:
            self.thread_pool = create_worker_pool(min_threads, parent=self)
        else:
            self.thread_pool = ensure_worker_capacity(thread_pool, min_threads)
        self._display_callback = display_callback

        self._machines = {}
        for kind, descriptor in DESCRIPTORS.items():
            machine = OperationStateMachine(
                descriptor,
                transport,
                thread_pool=self.thread_pool,
                timeout_ms=timeout_ms,
                parent=self,
            )
            machine.state_changed.connect(self._on_state_changed)
            self._machines[kind] = machine

        logger.debug(
            "Controller initialized: transport=%s, timeout_ms=%d, max_threads=%d",
            type(transport).__name__,
            timeout_ms,
            self.thread_pool.maxThreadCount(),
        )

    def set_display_callback(self, callback: DisplayCallback | None):
        """Replace the display callback (None disables it)."""
        self._display_callback = callback

    def descriptor(self, kind: OperationKind) -> OperationDescriptor:
        return self._machines[kind].descriptor

    def machine(self, kind: OperationKind) -> OperationStateMachine:
        return self._machines[kind]

    def state(self, kind: OperationKind) -> OperationState:
        """Snapshot of the current state for a kind."""
        return self._machines[kind].state.snapshot()

    def is_running(self, kind: OperationKind) -> bool:
        return self._machines[kind].state.is_running

    def run_trigger(self, kind: OperationKind, raw_input=None) -> bool:
        """Trigger an operation.

        A settled machine is reset to Idle first so a new cycle can start.
        A trigger while the operation is Running is ignored.

        Args:
            kind: Operation to run
            raw_input: Duration (speed test) or port range (port scan)

        Returns:
            True if the trigger was accepted, False if it was ignored
        """
        machine = self._machines[kind]

        if machine.state.is_settled:
            machine.reset()

        accepted = machine.trigger(raw_input)
        if not accepted:
            logger.info("Trigger ignored: %s is already running", kind.value)
        return accepted

    def reset(self, kind: OperationKind) -> bool:
        """Reset a settled operation to Idle."""
        return self._machines[kind].reset()

    def wait_for_done(self, msecs: int = -1) -> bool:
        """Wait for in-flight workers to finish (used at shutdown)."""
        return self.thread_pool.waitForDone(msecs)

    def _on_state_changed(self, kind: OperationKind, state: OperationState):
        """Forward a transition to observers."""
        self.state_changed.emit(kind, state)

        if self._display_callback is None:
            return

        try:
            self._display_callback(kind, state)
        except Exception as e:
            # Display errors must not disturb the state machine
            logger.exception("Display callback failed: kind=%s, error=%s", kind.value, str(e))
