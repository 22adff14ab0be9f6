import logging
import threading
import typing
from collections.abc import Callable

from uart_bridge import _codec
from uart_bridge import _exceptions

log = logging.getLogger("uart_bridge.notify")
data_log = logging.getLogger(log.name + ".data")

Channel = Callable[[str], None]


class NotificationTarget(typing.NamedTuple):
    """Where unsolicited receive events go (a success/failure pair)"""

    success: Channel
    failure: Channel


class NotificationChannel:
    """Single-slot subscription for bytes nobody asked for.

    There is no buffering: with no listener registered, delivered data
    is dropped, and a later registration does not see it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._target: NotificationTarget | None = None

    def __repr__(self) -> str:
        return f"NotificationChannel(target={self._target!r})"

    @property
    def target(self) -> NotificationTarget | None:
        with self._lock:
            return self._target

    def register(self, target: NotificationTarget | None) -> None:
        with self._lock:
            replaced, self._target = self._target, target
        if target is None:
            log.debug("Listener cleared")
        else:
            log.debug("Listener %s", "replaced" if replaced else "registered")

    def deliver(self, data: bytes) -> bool:
        if not (target := self.target):
            data_log.debug("Dropped %db (no listener)", len(data))
            return False

        data_log.debug("Delivering %db", len(data))
        return self._call(target.success, _codec.encode(data))

    def deliver_error(self, error: _exceptions.SerialBridgeException) -> bool:
        if not (target := self.target):
            log.debug("Dropped error (no listener): %s", error)
            return False

        return self._call(target.failure, error.description)

    @staticmethod
    def _call(channel: Channel, payload: str) -> bool:
        # Runs on the device's thread; a listener fault must not stop it
        try:
            channel(payload)
        except Exception:
            log.exception("Listener raised")
            return False
        return True
