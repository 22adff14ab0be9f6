import abc
import contextlib
import logging
import os
import threading
from collections.abc import Callable

import serial

from uart_bridge import _config
from uart_bridge import _locking

log = logging.getLogger("uart_bridge.device")
data_log = logging.getLogger(log.name + ".data")

ReadableHandler = Callable[[], None]
ErrorHandler = Callable[[OSError], None]

_PARITY = {
    _config.Parity.NONE: serial.PARITY_NONE,
    _config.Parity.ODD: serial.PARITY_ODD,
    _config.Parity.EVEN: serial.PARITY_EVEN,
    _config.Parity.MARK: serial.PARITY_MARK,
    _config.Parity.SPACE: serial.PARITY_SPACE,
}

_STOP_BITS = {
    _config.StopBits.ONE: serial.STOPBITS_ONE,
    _config.StopBits.ONE_AND_HALF: serial.STOPBITS_ONE_POINT_FIVE,
    _config.StopBits.TWO: serial.STOPBITS_TWO,
}


class SerialDevice(abc.ABC):
    """Driver-level capability a SerialSession drives.

    Constructing an instance acquires the device; it is not yet open.
    Configuration and notification setters raise OSError or ValueError
    on failure. Handlers may be invoked from any thread.
    """

    @abc.abstractmethod
    def set_baud_rate(self, baud: int) -> None: ...

    @abc.abstractmethod
    def set_parity(self, parity: _config.Parity) -> None: ...

    @abc.abstractmethod
    def disable_flow_control(self) -> None: ...

    @abc.abstractmethod
    def set_data_bits(self, bits: _config.DataBits) -> None: ...

    @abc.abstractmethod
    def set_stop_bits(self, bits: _config.StopBits) -> None: ...

    @abc.abstractmethod
    def arm_notifications(
        self, on_readable: ReadableHandler, on_error: ErrorHandler
    ) -> None: ...

    @abc.abstractmethod
    def disarm_notifications(self) -> None: ...

    @abc.abstractmethod
    def open(self) -> None:
        """Opens read-write; raises OSError (errno EBUSY if claimed)"""

    @abc.abstractmethod
    def set_dtr(self, active: bool) -> None: ...

    @abc.abstractmethod
    def set_rts(self, active: bool) -> None: ...

    @abc.abstractmethod
    def bytes_available(self) -> int: ...

    @abc.abstractmethod
    def read_all(self) -> bytes: ...

    @abc.abstractmethod
    def write(self, data: bytes) -> int:
        """Writes a prefix of data, returning its length (<0 on error)"""

    @abc.abstractmethod
    def close(self) -> None:
        """Releases the device; safe to call on a never-opened device"""


class PySerialDevice(SerialDevice):
    """SerialDevice on top of pyserial, for device paths or pyserial URLs.

    A watcher thread stands in for the driver's readability signal: it
    blocks for inbound bytes, buffers them, then calls the readable handler.
    """

    # pyserial bugs make big blocking writes unreliable:
    # https://github.com/pyserial/pyserial/issues/280
    WRITE_CHUNK = 256
    POLL_INTERVAL = 0.05

    def __init__(self, path: str):
        if "://" not in path and not os.path.exists(path):
            raise FileNotFoundError(2, "No such serial device", path)

        self.path = path
        self._serial = serial.serial_for_url(
            path, do_not_open=True, timeout=self.POLL_INTERVAL
        )
        self._lock = threading.Lock()
        self._incoming = bytearray()
        self._on_readable: ReadableHandler | None = None
        self._on_error: ErrorHandler | None = None
        self._closing = False
        self._watcher: threading.Thread | None = None
        self._cleanup = contextlib.ExitStack()
        log.debug("Acquired %s", path)

    def __repr__(self) -> str:
        return f"PySerialDevice({self.path!r})"

    def set_baud_rate(self, baud: int) -> None:
        self._serial.baudrate = baud

    def set_parity(self, parity: _config.Parity) -> None:
        self._serial.parity = _PARITY[parity]

    def disable_flow_control(self) -> None:
        self._serial.xonxoff = False
        self._serial.rtscts = False
        self._serial.dsrdtr = False

    def set_data_bits(self, bits: _config.DataBits) -> None:
        self._serial.bytesize = int(bits)

    def set_stop_bits(self, bits: _config.StopBits) -> None:
        self._serial.stopbits = _STOP_BITS[bits]

    def arm_notifications(
        self, on_readable: ReadableHandler, on_error: ErrorHandler
    ) -> None:
        with self._lock:
            self._on_readable, self._on_error = on_readable, on_error

    def disarm_notifications(self) -> None:
        with self._lock:
            self._on_readable, self._on_error = None, None

    def open(self) -> None:
        with contextlib.ExitStack() as cleanup:
            log.debug("Opening %s", self.path)
            self._serial.open()
            cleanup.callback(self._serial.close)
            try:
                fd = self._serial.fileno()
            except OSError:  # io.UnsupportedOperation for URL backends
                log.debug("No fd to lock for %s", self.path)
            else:
                cleanup.enter_context(_locking.using_fd_lock(self.path, fd))

            self._watcher = threading.Thread(
                target=self._watch, name=f"{self.path} watcher", daemon=True
            )
            self._watcher.start()
            self._cleanup = cleanup.pop_all()

    def set_dtr(self, active: bool) -> None:
        self._serial.dtr = active

    def set_rts(self, active: bool) -> None:
        self._serial.rts = active

    def bytes_available(self) -> int:
        with self._lock:
            return len(self._incoming)

    def read_all(self) -> bytes:
        with self._lock:
            data = bytes(self._incoming)
            self._incoming.clear()
            return data

    def write(self, data: bytes) -> int:
        chunk = data[: self.WRITE_CHUNK]
        written = self._serial.write(chunk)
        self._serial.flush()
        data_log.debug("Wrote %d/%db", written or 0, len(data))
        return len(chunk) if written is None else written

    def close(self) -> None:
        self._closing = True
        self.disarm_notifications()
        try:
            if self._serial.is_open:
                self._serial.cancel_read()
        except (OSError, AttributeError, NotImplementedError):
            log.debug("Can't cancel %s read", self.path, exc_info=True)

        watcher, self._watcher = self._watcher, None
        if watcher and watcher is not threading.current_thread():
            log.debug("Joining %s watcher", self.path)
            watcher.join()

        self._cleanup.close()
        log.debug("Closed %s", self.path)

    def _watch(self) -> None:
        log.debug("Starting thread")
        while not self._closing:
            try:
                # Block for at least one byte, then grab all available
                incoming = self._serial.read(size=1)
                if incoming and (waiting := self._serial.in_waiting) > 0:
                    incoming += self._serial.read(size=waiting)
            except OSError as ex:
                if self._closing:
                    break
                data_log.warning("Serial read error", exc_info=True)
                with self._lock:
                    on_error = self._on_error
                if on_error:
                    on_error(ex)
                break

            if incoming:
                with self._lock:
                    self._incoming.extend(incoming)
                    on_readable = self._on_readable
                    data_log.debug(
                        "Read %db buf=%db", len(incoming), len(self._incoming)
                    )
                if on_readable:
                    try:
                        on_readable()
                    except Exception:
                        log.exception("Readable handler failed")
        log.debug("Stopping thread")
