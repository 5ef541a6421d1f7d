"""
Shared fixtures for the GCode Host test suite.

``FakeSerial`` stands in for ``serial.Serial`` so the worker thread and
the controller can be exercised without hardware.
"""

import queue
import threading
import time

import pytest
import serial

from gcode_host.controller import PrinterController


# =============================================================================
# FAKE TRANSPORT
# =============================================================================

class FakeSerial:
    """Fake serial port: records writes, serves scripted read chunks."""

    def __init__(self, port=None, baudrate=None, timeout=None, **kwargs):
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.kwargs = kwargs
        self.written = []
        self.is_open = True
        self.close_count = 0
        self.write_error = None
        self.write_delay = 0.0
        self.write_started = threading.Event()
        self._reads = queue.Queue()
        self._lock = threading.Lock()

    def inject(self, data: bytes):
        """Queue a chunk that a later ``read`` returns as-is."""
        self._reads.put(data)

    def inject_line(self, line: str):
        self.inject(line.encode("ascii") + b"\n")

    def fail_next_read(self, exc=None):
        self._reads.put(exc or serial.SerialException("device reports readiness to read but returned no data"))

    def write(self, data: bytes) -> int:
        self.write_started.set()
        if self.write_delay:
            time.sleep(self.write_delay)
        if self.write_error is not None:
            raise self.write_error
        with self._lock:
            self.written.append(bytes(data))
        return len(data)

    def read(self, size=1) -> bytes:
        try:
            item = self._reads.get(timeout=self.timeout or 0.01)
        except queue.Empty:
            return b""
        if isinstance(item, BaseException):
            raise item
        return item[:size]

    def close(self):
        self.is_open = False
        self.close_count += 1

    @property
    def writes(self):
        with self._lock:
            return list(self.written)


class FakeSerialFactory:
    """Callable replacing ``serial.Serial``; remembers every port it opened."""

    def __init__(self):
        self.instances = []
        self.open_error = None
        self.overlapping_opens = 0

    def __call__(self, **kwargs):
        if self.open_error is not None:
            raise self.open_error
        if any(p.is_open for p in self.instances):
            self.overlapping_opens += 1
        port = FakeSerial(**kwargs)
        self.instances.append(port)
        return port

    @property
    def last(self) -> FakeSerial:
        return self.instances[-1]


def wait_until(predicate, timeout=2.0, interval=0.005):
    """Poll ``predicate`` until it is truthy or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return bool(predicate())


def drain(q):
    items = []
    while True:
        try:
            items.append(q.get_nowait())
        except queue.Empty:
            return items


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def serial_factory():
    return FakeSerialFactory()


@pytest.fixture
def printer(serial_factory):
    """Disconnected controller wired to the fake transport."""
    controller = PrinterController(serial_factory=serial_factory)
    yield controller
    controller.disconnect()


@pytest.fixture
def connected(printer, serial_factory):
    """Controller connected to a fake port; UI events from connecting are drained."""
    printer.connect("/dev/ttyFAKE0")
    drain(printer.ui_q)
    return printer, serial_factory.last


@pytest.fixture
def pump():
    """Return a helper that processes worker events until ``predicate`` holds."""
    def _pump(printer, predicate, timeout=2.0):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            printer.process_events(timeout=0.01)
            if predicate():
                return True
        return bool(predicate())
    return _pump


@pytest.fixture
def settings_file(tmp_path):
    return str(tmp_path / "settings.json")


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Tests that run the serial worker thread")
