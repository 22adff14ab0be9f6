import enum
import logging
from collections.abc import Mapping
from typing import Any

import pydantic

from uart_bridge import _exceptions

log = logging.getLogger("uart_bridge.config")

DEFAULT_DEVICE = "/dev/ttyUSB0"


class Parity(enum.IntEnum):
    NONE = 0
    ODD = 1
    EVEN = 2
    MARK = 3
    SPACE = 4


class DataBits(enum.IntEnum):
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8


class StopBits(enum.IntEnum):
    ONE = 1
    TWO = 2
    ONE_AND_HALF = 3


class PortConfig(pydantic.BaseModel):
    """Electrical and framing parameters for one serial session"""

    model_config = pydantic.ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    device: str = DEFAULT_DEVICE
    baud_rate: pydantic.PositiveInt = pydantic.Field(9600, alias="baudRate")
    parity: Parity = Parity.NONE
    data_bits: DataBits = pydantic.Field(DataBits.EIGHT, alias="dataBits")
    stop_bits: StopBits = pydantic.Field(StopBits.ONE, alias="stopBits")
    read_wait_millis: pydantic.NonNegativeInt = pydantic.Field(
        200, alias="readWaitMillis"
    )
    dtr: bool = False
    rts: bool = False

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> "PortConfig":
        """Builds from a caller's option mapping (camelCase keys);
        missing or unknown keys take defaults, bad values raise
        InvalidConfiguration"""

        try:
            config = cls.model_validate(dict(options))
        except pydantic.ValidationError as ex:
            error = ex.errors()[0]
            setting = ".".join(str(p) for p in error["loc"]) or "options"
            message = f"Invalid {setting} ({error['msg']})"
            device = options.get("device")
            port = device if isinstance(device, str) else None
            raise _exceptions.InvalidConfiguration(
                message, port, setting=setting
            ) from ex

        log.debug("Configured %s", config)
        return config

    @property
    def read_wait(self) -> float:
        return self.read_wait_millis / 1000.0
