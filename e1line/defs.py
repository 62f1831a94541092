"""Shared enumerations, log categories and log prefixes for E1 lines."""

import logging
from enum import Enum, IntEnum, auto

NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")

TS0_RX_CRC4_ERR = 0x01
TS0_RX_ALARM = 0x02


class TsMode(IntEnum):
    OFF = 0
    RAW = 1
    HDLCFCS = 2


class FramingMode(IntEnum):
    CRC4 = 0
    NO_CRC4 = 1


class LineMode(IntEnum):
    CHANNELIZED = 0
    SUPERCHANNEL = 1
    E1OIP = 2


class Driver(IntEnum):
    USB = 0
    VPAIR = 1
    DAHDI_TRUNKDEV = 2

    @property
    def label(self) -> str:
        """Configuration name of the driver."""
        return _DRIVER_LABELS[self]

    @classmethod
    def from_label(cls, label: str) -> "Driver":
        for driver, text in _DRIVER_LABELS.items():
            if text == label:
                return driver
        raise ValueError(f"unknown driver {label!r}")


_DRIVER_LABELS = {
    Driver.USB: "usb",
    Driver.VPAIR: "vpair",
    Driver.DAHDI_TRUNKDEV: "dahdi-trunkdev",
}


class LineCounter(IntEnum):
    LOS = 0
    LOA = 1
    CRC_ERR = 2
    RX_OVFL = 3
    TX_UNFL = 4
    RX_REMOTE_E = 5
    RX_REMOTE_A = 6
    FRAMES_MUXED_E1T = 7
    FRAMES_DEMUXED_E1O = 8
    USB_ISO_TRUNC = 9


class LineStat(IntEnum):
    GPSDO_STATE = 0
    GPSDO_ANTENNA = 1
    GPSDO_TUNE_COARSE = 2
    GPSDO_TUNE_FINE = 3
    GPSDO_FREQ_EST = 4
    GPSDO_ERR_ACC = 5


class DaemonEvent(Enum):
    """Events reported to control clients."""

    RAI_ON = auto()
    RAI_OFF = auto()
    SABITS = auto()


class LogCategory(IntEnum):
    DE1D = 0
    DXFR = 1
    DTRUNKDEV = 2

    @property
    def default_level(self) -> int:
        return _CATEGORY_LEVELS[self]

    @property
    def description(self) -> str:
        return _CATEGORY_DESCRIPTIONS.get(self, self.name)


_CATEGORY_LEVELS = {
    LogCategory.DE1D: logging.INFO,
    LogCategory.DXFR: NOTICE,
    LogCategory.DTRUNKDEV: NOTICE,
}

_CATEGORY_DESCRIPTIONS = {
    LogCategory.DTRUNKDEV: "DAHDI trunkdev driver",
}


def get_logger(category: LogCategory) -> logging.Logger:
    """Return the logger of a category, set to its default level if unset."""
    logger = logging.getLogger(f"e1line.{category.name}")
    if logger.level == logging.NOTSET:
        logger.setLevel(category.default_level)
    return logger


def intf_prefix(intf_id: int) -> str:
    return f"(I{intf_id})"


def line_prefix(intf_id: int, line_id: int) -> str:
    return f"(I{intf_id}:L{line_id})"


def ts_prefix(intf_id: int, line_id: int, ts_id: int) -> str:
    return f"(I{intf_id}:L{line_id}:T{ts_id})"