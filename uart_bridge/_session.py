import contextlib
import errno
import functools
import logging
import threading
from collections.abc import Callable

import pydantic

from uart_bridge import _codec
from uart_bridge import _config
from uart_bridge import _device
from uart_bridge import _exceptions
from uart_bridge import _notify
from uart_bridge import _timeout_math

log = logging.getLogger("uart_bridge.session")
data_log = logging.getLogger(log.name + ".data")

DeviceFactory = Callable[[str], _device.SerialDevice]


class SerialSession(contextlib.AbstractContextManager):
    """Owns one serial device handle and the listener for unsolicited data.

    The session is open iff it holds a handle. Opening is all-or-nothing;
    closing a closed session is an error (PortNotOpen), not a no-op.
    """

    def __init__(self, device_factory: DeviceFactory = _device.PySerialDevice):
        self._device_factory = device_factory
        self._monitor = threading.Condition(threading.RLock())
        self._lifecycle_lock = threading.RLock()
        self._write_lock = threading.Lock()
        self._device: _device.SerialDevice | None = None
        self._config: _config.PortConfig | None = None
        self._waiting_readers = 0
        self.notifications = _notify.NotificationChannel()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if self.is_open:
            self.close()

    def __repr__(self) -> str:
        port = self._config.device if self._config else None
        state = "closed" if self._device is None else "open"
        return f"SerialSession({port!r}, {state})"

    @property
    def is_open(self) -> bool:
        with self._monitor:
            return self._device is not None

    @property
    def config(self) -> _config.PortConfig | None:
        """Settings of the current (or most recent) open"""

        return self._config

    def open(self, config: _config.PortConfig) -> None:
        port = config.device
        with self._lifecycle_lock:
            if self.is_open:
                raise _exceptions.OpenFailed("Port already open", port)

            log.debug("Opening %s (%s)", port, config)
            try:
                device = self._device_factory(port)
            except (OSError, ValueError) as ex:
                raise _exceptions.DeviceUnavailable(None, port) from ex

            with contextlib.ExitStack() as cleanup:
                cleanup.callback(self._release, device, port)

                steps = (
                    ("baudRate", device.set_baud_rate, config.baud_rate),
                    ("parity", device.set_parity, config.parity),
                    ("flowControl", device.disable_flow_control),
                    ("dataBits", device.set_data_bits, config.data_bits),
                    ("stopBits", device.set_stop_bits, config.stop_bits),
                )
                for setting, apply, *value in steps:
                    try:
                        apply(*value)
                    except (OSError, ValueError) as ex:
                        message = f"Invalid {setting}"
                        raise _exceptions.InvalidConfiguration(
                            message, port, setting=setting
                        ) from ex

                try:
                    device.arm_notifications(
                        functools.partial(self._on_readable, device),
                        functools.partial(self._on_device_error, device),
                    )
                except OSError as ex:
                    raise _exceptions.NotificationArmFailed(None, port) from ex

                try:
                    device.open()
                    if config.dtr:
                        device.set_dtr(True)
                    if config.rts:
                        device.set_rts(True)
                except OSError as ex:
                    if ex.errno == errno.EBUSY:
                        raise _exceptions.PortBusy(None, port) from ex
                    raise _exceptions.OpenFailed(None, port) from ex
                except ValueError as ex:
                    # pyserial re-checks settings against the real port here
                    raise _exceptions.InvalidConfiguration(None, port) from ex

                cleanup.pop_all()

            with self._monitor:
                self._device, self._config = device, config
            log.info("Opened %s at %d baud", port, config.baud_rate)

    @pydantic.validate_call
    def write(self, data: bytes) -> None:
        """Writes all of data or raises WriteError (bytes written before
        the error are not reported)"""

        with self._write_lock:
            device, _ = self._require_open()
            written = 0
            while written < len(data):
                try:
                    result = device.write(data[written:])
                except OSError as ex:
                    raise _exceptions.WriteError(None, self._port) from ex
                if result < 0:
                    raise _exceptions.WriteError(None, self._port)
                written += result
            data_log.debug("Wrote %db", written)

    @pydantic.validate_call
    def write_hex(self, hex_text: str) -> None:
        """Writes pairs of hex digits as bytes; an odd last digit is dropped"""

        try:
            data = _codec.decode(hex_text)
        except ValueError as ex:
            message = "Invalid hex data"
            raise _exceptions.InvalidRequest(message, self._port) from ex
        self.write(data)

    def read(self) -> bytes:
        """Returns buffered bytes, waiting up to read_wait_millis for some"""

        with self._monitor:
            device, config = self._require_open()
            deadline = _timeout_math.to_deadline(config.read_wait)
            self._waiting_readers += 1
            try:
                while True:
                    if self._device is not device:
                        raise _exceptions.PortNotOpen(None, self._port)
                    if device.bytes_available() > 0:
                        data = device.read_all()
                        data_log.debug("Read %db", len(data))
                        return data
                    wait = _timeout_math.from_deadline(deadline)
                    if wait <= 0:
                        raise _exceptions.NoDataAvailable(None, self._port)
                    self._monitor.wait(timeout=wait)
            finally:
                self._waiting_readers -= 1

    def close(self) -> None:
        with self._lifecycle_lock:
            with self._monitor:
                device, config = self._require_open()
                self._device = None
                self._monitor.notify_all()

            # Not under the monitor: the device may join a thread that wants it
            log.debug("Closing %s", config.device)
            self._release(device, config.device)
            log.info("Closed %s", config.device)

    def register_listener(
        self, target: _notify.NotificationTarget | None
    ) -> None:
        self.notifications.register(target)

    @property
    def _port(self) -> str | None:
        return self._config.device if self._config else None

    def _require_open(
        self,
    ) -> tuple[_device.SerialDevice, _config.PortConfig]:
        with self._monitor:
            if self._device is None or self._config is None:
                raise _exceptions.PortNotOpen(None, self._port)
            return self._device, self._config

    @staticmethod
    def _release(device: _device.SerialDevice, port: str) -> None:
        # The handle is already detached; a failing close still ends it
        try:
            device.disarm_notifications()
            device.close()
        except OSError as ex:
            log.warning("Error closing %s (%s)", port, ex)

    def _on_readable(self, device: _device.SerialDevice) -> None:
        with self._monitor:
            if device is not self._device:
                data_log.debug("Ignoring event from released handle")
                return
            if self._waiting_readers:
                self._monitor.notify_all()
                return
            if data := device.read_all():
                self.notifications.deliver(data)

    def _on_device_error(
        self, device: _device.SerialDevice, error: OSError
    ) -> None:
        with self._monitor:
            if device is not self._device:
                return
            log.warning("%s failed (%s)", self._port, error)
            self._monitor.notify_all()
            failure = _exceptions.ReadError(None, self._port)
            self.notifications.deliver_error(failure)
