"""Exception hierarchy for uart_bridge"""


class SerialBridgeException(OSError):
    default_message = "Serial bridge error"

    def __init__(
        self,
        message: str | None = None,
        port: str | None = None,
    ):
        message = message or self.default_message
        super().__init__(f"{port}: {message}" if port else message)
        self.message = message
        self.port = port

    @property
    def kind(self) -> str:
        return type(self).__name__

    @property
    def description(self) -> str:
        """Single-quoted text as sent down a failure channel"""

        return "'" + self.message.replace("'", "\\'") + "'"


class DeviceUnavailable(SerialBridgeException):
    default_message = "Device unavailable"


class InvalidConfiguration(SerialBridgeException):
    default_message = "Invalid configuration"

    def __init__(
        self,
        message: str | None = None,
        port: str | None = None,
        setting: str | None = None,
    ):
        super().__init__(message, port)
        self.setting = setting


class NotificationArmFailed(SerialBridgeException):
    default_message = "Notification arm failed"


class OpenFailed(SerialBridgeException):
    default_message = "Open failed"


class PortBusy(OpenFailed):
    default_message = "Serial port busy"


class PortNotOpen(SerialBridgeException):
    default_message = "Port not open"


class WriteError(SerialBridgeException):
    default_message = "Error writing data"


class ReadError(SerialBridgeException):
    default_message = "Error reading data"


class NoDataAvailable(SerialBridgeException):
    default_message = "No data available"


class InvalidRequest(SerialBridgeException):
    default_message = "Invalid request"
