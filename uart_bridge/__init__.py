"""
Serial (UART) port bridge: callback-driven open/read/write/close with
escaped-hex payloads and unsolicited receive notifications.
"""

from beartype.claw import beartype_this_package as _beartype_me

# ruff: noqa: E402
_beartype_me()

from uart_bridge._bridge import SerialBridge

from uart_bridge._config import (
    DataBits,
    Parity,
    PortConfig,
    StopBits,
)

from uart_bridge._device import PySerialDevice, SerialDevice

from uart_bridge._exceptions import (
    DeviceUnavailable,
    InvalidConfiguration,
    InvalidRequest,
    NoDataAvailable,
    NotificationArmFailed,
    OpenFailed,
    PortBusy,
    PortNotOpen,
    ReadError,
    SerialBridgeException,
    WriteError,
)

from uart_bridge._notify import NotificationChannel, NotificationTarget
from uart_bridge._session import SerialSession

from uart_bridge import _codec as codec

__all__ = [n for n in dir() if not n.startswith("_")]
