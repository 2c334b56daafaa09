"""Worker classes for background transport calls."""

import logging

from PySide6.QtCore import QObject, QRunnable, QThreadPool, Signal

from netdiag.errors import TransportError
from netdiag.models import OperationKind
from netdiag.transport import Transport

logger = logging.getLogger(__name__)

# One live request plus one timed-out request still unwinding
WORKERS_PER_OPERATION = 2


class WorkerSignals(QObject):
    """Signals for communicating between worker threads and main thread."""

    response_ready = Signal(int, object)  # Emits (generation_id, response body)
    failed = Signal(int, str)  # Emits (generation_id, error message)
    finished = Signal(int)  # Emits generation_id when worker completes


class RequestWorker(QRunnable):
    """Worker that executes transport.request() in a background thread."""

    def __init__(
        self,
        transport: Transport,
        kind: OperationKind,
        endpoint: str,
        method: str,
        payload: dict | None,
        generation_id: int,
    ):
        super().__init__()
        self.transport = transport
        self.kind = kind
        self.endpoint = endpoint
        self.method = method
        self.payload = payload
        self.generation_id = generation_id
        self.signals = WorkerSignals()

    def run(self):
        """Execute the request in background thread."""
        try:
            logger.debug(
                "Worker starting: kind=%s, endpoint=%s, generation_id=%d",
                self.kind.value,
                self.endpoint,
                self.generation_id,
            )

            # Blocks for as long as the service takes (a speed test runs for its full duration)
            body = self.transport.request(self.endpoint, self.method, self.payload)

            self.signals.response_ready.emit(self.generation_id, body)

            logger.debug(
                "Worker completed: kind=%s, generation_id=%d", self.kind.value, self.generation_id
            )

        except TransportError as e:
            logger.debug(
                "Worker transport failure: kind=%s, generation_id=%d, error=%s",
                self.kind.value,
                self.generation_id,
                str(e),
            )
            self.signals.failed.emit(self.generation_id, str(e) or type(e).__name__)

        except Exception as e:
            logger.exception(
                "Worker exception: kind=%s, generation_id=%d, error=%s",
                self.kind.value,
                self.generation_id,
                str(e),
            )
            self.signals.failed.emit(self.generation_id, str(e) or type(e).__name__)

        finally:
            # Always signal completion
            self.signals.finished.emit(self.generation_id)


def ensure_worker_capacity(pool: QThreadPool, min_threads: int) -> QThreadPool:
    """Raise the pool's thread limit to at least min_threads.

    The default limit is the CPU count, which can be 1. A blocked request
    must never keep another operation's worker waiting in the queue.
    """
    if pool.maxThreadCount() < min_threads:
        logger.debug("Raising worker pool limit: %d -> %d", pool.maxThreadCount(), min_threads)
        pool.setMaxThreadCount(min_threads)
    return pool


def create_worker_pool(min_threads: int, parent=None) -> QThreadPool:
    """Dedicated pool for request workers."""
    return ensure_worker_capacity(QThreadPool(parent), min_threads)
