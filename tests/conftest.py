import contextlib
import errno
import io
import os
import pty
import threading
import typing

import ok_logging_setup
import pytest

import uart_bridge

ok_logging_setup.install(
    {
        "OK_LOGGING_LEVEL": "uart_bridge=DEBUG,WARNING",
        "OK_LOGGING_OUTPUT": "stdout",
    }
)


class PseudoTtySerial(typing.NamedTuple):
    path: str
    control: io.FileIO
    simulated: io.FileIO


@pytest.fixture
def pty_serial():
    with contextlib.ExitStack() as cleanup:
        ctrl_fd, sim_fd = pty.openpty()
        path = os.ttyname(sim_fd)
        ctrl = cleanup.enter_context(os.fdopen(ctrl_fd, "r+b", buffering=0))
        sim = cleanup.enter_context(os.fdopen(sim_fd, "r+b", buffering=0))
        yield PseudoTtySerial(path=path, control=ctrl, simulated=sim)


class FakeDevice(uart_bridge.SerialDevice):
    """In-memory device; tests push inbound bytes with feed()"""

    def __init__(self, path: str, max_chunk: int = 4096):
        self.path = path
        self.max_chunk = max_chunk
        self.settings: dict[str, object] = {}
        self.fail_on: set[str] = set()
        self.fail_write_after = -1
        self.is_open = False
        self.closed = False
        self.written = bytearray()
        self.write_calls = 0
        self.incoming = bytearray()
        self.on_readable = None
        self.on_error = None
        self._lock = threading.Lock()

    def _step(self, name: str, value: object = None) -> None:
        if name in self.fail_on:
            raise ValueError(f"{name} rejected")
        self.settings[name] = value

    def set_baud_rate(self, baud):
        self._step("baudRate", baud)

    def set_parity(self, parity):
        self._step("parity", parity)

    def disable_flow_control(self):
        self._step("flowControl", False)

    def set_data_bits(self, bits):
        self._step("dataBits", bits)

    def set_stop_bits(self, bits):
        self._step("stopBits", bits)

    def arm_notifications(self, on_readable, on_error):
        if "arm" in self.fail_on:
            raise OSError("can't arm")
        self.on_readable, self.on_error = on_readable, on_error

    def disarm_notifications(self):
        self.on_readable, self.on_error = None, None

    def open(self):
        if "busy" in self.fail_on:
            raise OSError(errno.EBUSY, "busy")
        if "open" in self.fail_on:
            raise OSError(errno.EIO, "open failed")
        if "reconfigure" in self.fail_on:
            raise ValueError("invalid baudrate: 4294967296")
        self.is_open = True

    def set_dtr(self, active):
        self._step("dtr", active)

    def set_rts(self, active):
        self._step("rts", active)

    def bytes_available(self):
        with self._lock:
            return len(self.incoming)

    def read_all(self):
        with self._lock:
            data = bytes(self.incoming)
            self.incoming.clear()
            return data

    def write(self, data):
        if 0 <= self.fail_write_after <= self.write_calls:
            return -1
        self.write_calls += 1
        chunk = data[: self.max_chunk]
        self.written.extend(chunk)
        return len(chunk)

    def close(self):
        self.is_open = False
        self.closed = True
        if "close" in self.fail_on:
            raise OSError(errno.EIO, "device unplugged")

    def feed(self, data: bytes, notify: bool = True) -> None:
        """Simulates the driver receiving bytes (and signalling, if armed)"""

        with self._lock:
            self.incoming.extend(data)
        if notify and self.on_readable:
            self.on_readable()


class FakeDevices:
    def __init__(self):
        self.created: list[FakeDevice] = []
        self.max_chunk = 4096
        self.fail_on: set[str] = set()
        self.missing: set[str] = set()

    def __call__(self, path: str) -> FakeDevice:
        if path in self.missing:
            raise FileNotFoundError(2, "No such serial device", path)
        device = FakeDevice(path, max_chunk=self.max_chunk)
        device.fail_on = set(self.fail_on)
        self.created.append(device)
        return device

    @property
    def last(self) -> FakeDevice:
        return self.created[-1]


@pytest.fixture
def fake_devices():
    return FakeDevices()


@pytest.fixture
def session(fake_devices):
    return uart_bridge.SerialSession(device_factory=fake_devices)


@pytest.fixture
def open_session(session):
    session.open(uart_bridge.PortConfig(device="/dev/fake0"))
    yield session
    if session.is_open:
        session.close()
