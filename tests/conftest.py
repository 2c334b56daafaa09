"""Shared fixtures for NetDiag tests."""

import os
import threading
import time

# Widgets are created without a display
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QCoreApplication
from PySide6.QtWidgets import QApplication

from netdiag.operations import DESCRIPTORS
from netdiag.workers import WORKERS_PER_OPERATION, create_worker_pool


class ControlledTransport:
    """Transport whose responses and timing are controlled by the test.

    Responses are keyed by endpoint; an Exception instance is raised instead
    of returned. hold(endpoint) blocks calls to that endpoint until
    release(endpoint) is called.
    """

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []  # [(endpoint, method, payload)]
        self._lock = threading.Lock()
        self._gates = {}

    def hold(self, endpoint: str):
        self._gates[endpoint] = threading.Event()

    def release(self, endpoint: str):
        self._gates[endpoint].set()

    def release_all(self):
        for gate in self._gates.values():
            gate.set()

    def call_count(self, endpoint: str | None = None) -> int:
        with self._lock:
            if endpoint is None:
                return len(self.calls)
            return sum(1 for call in self.calls if call[0] == endpoint)

    def request(self, endpoint, method, payload=None):
        with self._lock:
            self.calls.append((endpoint, method, payload))

        gate = self._gates.get(endpoint)
        if gate is not None:
            gate.wait(5)

        response = self.responses[endpoint]
        if isinstance(response, Exception):
            raise response
        return response


def wait_until(predicate, timeout_ms: int = 3000) -> bool:
    """Spin the Qt event loop until predicate() is true or the timeout expires."""
    deadline = time.monotonic() + timeout_ms / 1000.0
    while time.monotonic() < deadline:
        QCoreApplication.processEvents()
        if predicate():
            return True
        time.sleep(0.005)
    QCoreApplication.processEvents()
    return predicate()


@pytest.fixture(scope="session")
def qapp():
    """Create QApplication instance for tests."""
    app = QApplication.instance()
    if app is None:
        app = QApplication([])
    yield app


@pytest.fixture
def thread_pool(qapp):
    """Dedicated worker pool, drained after each test."""
    pool = create_worker_pool(len(DESCRIPTORS) * WORKERS_PER_OPERATION)
    yield pool
    pool.waitForDone(5000)
    QCoreApplication.processEvents()


@pytest.fixture
def transport():
    """ControlledTransport with contract-shaped default responses."""
    controlled = ControlledTransport(
        {
            "/api/ping": {"duration_ms": 42},
            "/api/speed": {"total_bytes": 1572864, "duration_secs": 2.0, "mbps": 6.29},
            "/api/ports": {
                "total_ports": 6,
                "success_count": 6,
                "fail_count": 0,
                "open_ports": [22],
            },
        }
    )
    yield controlled
    controlled.release_all()


@pytest.fixture(name="wait_until")
def wait_until_fixture():
    return wait_until
