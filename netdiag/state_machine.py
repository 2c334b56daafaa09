"""Per-operation state machine with at most one request in flight."""

import logging

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal

from netdiag.errors import ShapeError, ValidationError
from netdiag.models import OperationState, Phase
from netdiag.operations import OperationDescriptor
from netdiag.transport import Transport
from netdiag.workers import (
    WORKERS_PER_OPERATION,
    RequestWorker,
    create_worker_pool,
    ensure_worker_capacity,
)

logger = logging.getLogger(__name__)


class OperationStateMachine(QObject):
    """Drives one operation through Idle -> Running -> Success|Failure.

    Key features:
    - Re-entrant triggers while Running are dropped (no second request)
    - Input validation failures go straight to Failure without a request
    - Settled states stay settled until reset() is called
    - Optional timeout forces Failure if the transport never resolves
    - Generation ID discards results that arrive after a timeout

    Thread-safe: All state access on Qt main thread via signals/slots.
    """

    # Signals
    state_changed = Signal(object, object)  # (OperationKind, OperationState snapshot)

    def __init__(
        self,
        descriptor: OperationDescriptor,
        transport: Transport,
        thread_pool: QThreadPool | None = None,
        timeout_ms: int = 0,
        parent=None,
    ):
        """Initialize state machine in the Idle phase.

        Args:
            descriptor: Static metadata for the operation
            transport: Transport used to reach the diagnostic service
            thread_pool: Pool for request workers (default: a dedicated pool)
            timeout_ms: Force Failure after this many ms in Running (0 disables)
            parent: Qt parent object
        """
        super().__init__(parent)

        if timeout_ms < 0:
            raise ValueError("timeout_ms must not be negative")

        self.descriptor = descriptor
        self.kind = descriptor.kind
        self.transport = transport
        if thread_pool is None:
            self.thread_pool = create_worker_pool(WORKERS_PER_OPERATION, parent=self)
        else:
            self.thread_pool = ensure_worker_capacity(thread_pool, WORKERS_PER_OPERATION)
        self.timeout_ms = timeout_ms

        self.state = OperationState(kind=self.kind)

        # Generation ID for invalidating stale results
        self._generation_id = 0
        self._active_workers = {}  # {generation_id: RequestWorker}

        self._timeout_timer = QTimer(self)
        self._timeout_timer.setSingleShot(True)
        self._timeout_timer.timeout.connect(self._on_timeout)

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def generation_id(self) -> int:
        return self._generation_id

    @property
    def in_flight(self) -> int:
        """Number of workers that have not reported completion."""
        return len(self._active_workers)

    def trigger(self, raw_input=None) -> bool:
        """Start a request cycle.

        Args:
            raw_input: Operation parameter (ignored when none is required)

        Returns:
            True if the trigger was accepted (request dispatched or validation
            failure recorded), False if it was ignored
        """
        if self.state.phase is Phase.RUNNING:
            logger.debug("Trigger ignored: %s already running", self.kind.value)
            return False

        if self.state.phase is not Phase.IDLE:
            logger.debug(
                "Trigger ignored: %s is settled (%s), reset first",
                self.kind.value,
                self.state.phase.value,
            )
            return False

        try:
            payload = self.descriptor.parse_input(raw_input)
        except ValidationError as e:
            logger.info("Validation failed: kind=%s, error=%s", self.kind.value, e)
            self._transition(Phase.FAILURE, error_message=str(e))
            return True

        self._generation_id += 1
        generation_id = self._generation_id

        self._transition(Phase.RUNNING)

        worker = RequestWorker(
            self.transport,
            self.kind,
            self.descriptor.endpoint,
            self.descriptor.method,
            payload,
            generation_id,
        )
        worker.signals.response_ready.connect(self._on_response_ready)
        worker.signals.failed.connect(self._on_request_failed)
        worker.signals.finished.connect(self._on_request_finished)

        # Keep workers alive until their queued signals are delivered
        self._active_workers[generation_id] = worker

        if self.timeout_ms > 0:
            self._timeout_timer.start(self.timeout_ms)

        logger.info(
            "Request dispatched: kind=%s, request=%s %s, generation_id=%d",
            self.kind.value,
            self.descriptor.method,
            self.descriptor.endpoint,
            generation_id,
        )
        self.thread_pool.start(worker)
        return True

    def reset(self) -> bool:
        """Return a settled machine to Idle.

        Returns:
            True if the machine was reset, False if it was Idle or Running
        """
        if not self.state.is_settled:
            return False
        self._transition(Phase.IDLE)
        return True

    def _transition(self, phase: Phase, result=None, error_message: str | None = None):
        """Overwrite the live state and notify observers."""
        previous = self.state.phase

        self.state.phase = phase
        self.state.result = result
        self.state.error_message = error_message
        self.state.check_consistency()

        logger.debug(
            "Transition: kind=%s, %s -> %s", self.kind.value, previous.value, phase.value
        )
        self.state_changed.emit(self.kind, self.state.snapshot())

    def _is_current(self, generation_id: int) -> bool:
        if generation_id != self._generation_id or self.state.phase is not Phase.RUNNING:
            logger.debug(
                "Ignoring stale result: kind=%s, generation_id=%d (current=%d)",
                self.kind.value,
                generation_id,
                self._generation_id,
            )
            return False
        return True

    def _on_response_ready(self, generation_id: int, body):
        """Handle a success body from the worker."""
        if not self._is_current(generation_id):
            return
        self._timeout_timer.stop()

        try:
            result = self.descriptor.parse_response(body)
        except ShapeError as e:
            logger.warning("Malformed response: kind=%s, error=%s", self.kind.value, e)
            self._transition(Phase.FAILURE, error_message=f"Unexpected response from server: {e}")
            return

        logger.info("Request succeeded: kind=%s, generation_id=%d", self.kind.value, generation_id)
        self._transition(Phase.SUCCESS, result=result)

    def _on_request_failed(self, generation_id: int, error_msg: str):
        """Handle a transport failure from the worker."""
        if not self._is_current(generation_id):
            return
        self._timeout_timer.stop()

        logger.warning(
            "Request failed: kind=%s, generation_id=%d, error=%s",
            self.kind.value,
            generation_id,
            error_msg,
        )
        self._transition(Phase.FAILURE, error_message=error_msg)

    def _on_request_finished(self, generation_id: int):
        """Handle worker completion - drop the worker reference."""
        self._active_workers.pop(generation_id, None)

    def _on_timeout(self):
        """Force Failure when the transport has not resolved in time."""
        if self.state.phase is not Phase.RUNNING:
            return

        # Late results from this request will be discarded
        self._generation_id += 1
        logger.warning("Request timed out: kind=%s, timeout_ms=%d", self.kind.value, self.timeout_ms)
        self._transition(Phase.FAILURE, error_message=f"Request timed out after {self.timeout_ms} ms")
