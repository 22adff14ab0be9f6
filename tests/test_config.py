"""Unit tests for uart_bridge._config."""

import pydantic
import pytest

import uart_bridge
from uart_bridge import _exceptions


def test_defaults():
    config = uart_bridge.PortConfig.from_options({})
    assert config.device == "/dev/ttyUSB0"
    assert config.baud_rate == 9600
    assert config.parity == uart_bridge.Parity.NONE
    assert config.data_bits == uart_bridge.DataBits.EIGHT
    assert config.stop_bits == uart_bridge.StopBits.ONE
    assert config.read_wait_millis == 200
    assert config.read_wait == 0.2
    assert not config.dtr and not config.rts


def test_camel_case_options():
    config = uart_bridge.PortConfig.from_options(
        {
            "device": "/dev/ttyACM1",
            "baudRate": 115200,
            "parity": 2,
            "dataBits": 7,
            "stopBits": 3,
            "readWaitMillis": 0,
            "dtr": True,
        }
    )
    assert config.device == "/dev/ttyACM1"
    assert config.baud_rate == 115200
    assert config.parity == uart_bridge.Parity.EVEN
    assert config.data_bits == uart_bridge.DataBits.SEVEN
    assert config.stop_bits == uart_bridge.StopBits.ONE_AND_HALF
    assert config.read_wait_millis == 0
    assert config.dtr


def test_unknown_options_are_ignored():
    config = uart_bridge.PortConfig.from_options(
        {"sleepOnPause": False, "vid": "0403"}
    )
    assert config == uart_bridge.PortConfig()


@pytest.mark.parametrize(
    "options, setting",
    [
        ({"parity": 5}, "parity"),
        ({"parity": -1}, "parity"),
        ({"dataBits": 9}, "dataBits"),
        ({"stopBits": 0}, "stopBits"),
        ({"baudRate": 0}, "baudRate"),
        ({"baudRate": "fast"}, "baudRate"),
        ({"readWaitMillis": -5}, "readWaitMillis"),
    ],
)
def test_out_of_range_options_fail(options, setting):
    with pytest.raises(_exceptions.InvalidConfiguration) as exc_info:
        uart_bridge.PortConfig.from_options(options)
    assert exc_info.value.setting == setting
    assert exc_info.value.kind == "InvalidConfiguration"


def test_config_is_immutable():
    config = uart_bridge.PortConfig()
    with pytest.raises(pydantic.ValidationError):
        config.baud_rate = 19200


def test_snake_case_construction():
    config = uart_bridge.PortConfig(device="loop://", baud_rate=57600)
    assert config.baud_rate == 57600
    with pytest.raises(pydantic.ValidationError):
        uart_bridge.PortConfig(parity=7)
