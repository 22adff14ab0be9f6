import logging
from collections.abc import Mapping
from typing import Any

import msgspec

from uart_bridge import _codec
from uart_bridge import _config
from uart_bridge import _exceptions
from uart_bridge import _notify
from uart_bridge import _session

log = logging.getLogger("uart_bridge.bridge")

Channel = _notify.Channel

EMPTY_RESULT = msgspec.json.encode({}).decode()


class OptsArgs(msgspec.Struct, frozen=True):
    opts: dict[str, Any] = msgspec.field(default_factory=dict)


class DataArgs(msgspec.Struct, frozen=True):
    data: str


class SerialBridge:
    """Host-facing entry points; every call ends in exactly one of its
    success or failure channels (registerListener excepted)"""

    def __init__(self, session: _session.SerialSession | None = None):
        self.session = session or _session.SerialSession()
        self._actions = {
            "requestPermission": self._exec_request_permission,
            "open": self._exec_open,
            "openSerial": self._exec_open,
            "write": self._exec_write,
            "writeSerial": self._exec_write,
            "writeHex": self._exec_write_hex,
            "writeSerialHex": self._exec_write_hex,
            "read": self._exec_read,
            "readSerial": self._exec_read,
            "close": self._exec_close,
            "closeSerial": self._exec_close,
            "registerListener": self._exec_register_listener,
            "registerReadCallback": self._exec_register_listener,
        }

    def __repr__(self) -> str:
        return f"SerialBridge({self.session!r})"

    def execute(
        self,
        action: str,
        args: str | bytes | list,
        success: Channel,
        failure: Channel,
    ) -> bool:
        """Runs a named action with a JSON argument array; returns False
        (calling neither channel) if the action is unknown"""

        if not (handler := self._actions.get(action)):
            log.warning("Unknown action %r", action)
            return False

        log.debug("Action: %s", action)
        try:
            if isinstance(args, (str, bytes)):
                args = msgspec.json.decode(args, type=list)
            first = args[0] if args else {}
        except msgspec.DecodeError as ex:
            failure(_invalid_request(ex).description)
            return True

        handler(first, success, failure)
        return True

    def request_permission(self, success: Channel, failure: Channel) -> None:
        success(EMPTY_RESULT)

    def open(
        self, opts: Mapping[str, Any], success: Channel, failure: Channel
    ) -> None:
        def run():
            config = _config.PortConfig.from_options(opts)
            self.session.open(config)
            return EMPTY_RESULT

        self._run(run, success, failure)

    def write(self, data: str, success: Channel, failure: Channel) -> None:
        def run():
            self.session.write(data.encode("latin-1", errors="replace"))
            return EMPTY_RESULT

        self._run(run, success, failure)

    def write_hex(self, data: str, success: Channel, failure: Channel) -> None:
        def run():
            self.session.write_hex(data)
            return EMPTY_RESULT

        self._run(run, success, failure)

    def read(self, success: Channel, failure: Channel) -> None:
        self._run(lambda: _codec.encode(self.session.read()), success, failure)

    def close(self, success: Channel, failure: Channel) -> None:
        def run():
            self.session.close()
            return EMPTY_RESULT

        self._run(run, success, failure)

    def register_listener(self, success: Channel, failure: Channel) -> None:
        target = _notify.NotificationTarget(success=success, failure=failure)
        self.session.register_listener(target)

    def _run(self, run, success: Channel, failure: Channel) -> None:
        try:
            result = run()
        except _exceptions.SerialBridgeException as ex:
            log.info("%s: %s", ex.kind, ex)
            failure(ex.description)
        else:
            success(result)

    def _exec_request_permission(self, first, success, failure) -> None:
        self.request_permission(success, failure)

    def _exec_open(self, first, success, failure) -> None:
        try:
            args = msgspec.convert(first, OptsArgs)
        except msgspec.ValidationError as ex:
            failure(_invalid_request(ex).description)
        else:
            self.open(args.opts, success, failure)

    def _exec_write(self, first, success, failure) -> None:
        try:
            args = msgspec.convert(first, DataArgs)
        except msgspec.ValidationError as ex:
            failure(_invalid_request(ex).description)
        else:
            self.write(args.data, success, failure)

    def _exec_write_hex(self, first, success, failure) -> None:
        try:
            args = msgspec.convert(first, DataArgs)
        except msgspec.ValidationError as ex:
            failure(_invalid_request(ex).description)
        else:
            self.write_hex(args.data, success, failure)

    def _exec_read(self, first, success, failure) -> None:
        self.read(success, failure)

    def _exec_close(self, first, success, failure) -> None:
        self.close(success, failure)

    def _exec_register_listener(self, first, success, failure) -> None:
        self.register_listener(success, failure)


def _invalid_request(ex: msgspec.MsgspecError) -> _exceptions.InvalidRequest:
    error = _exceptions.InvalidRequest(f"Invalid arguments ({ex})")
    error.__cause__ = ex
    return error
