"""Control and interrupt message layouts of the icE1usb USB device."""

import struct
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from typing import ClassVar

# Device requests
DEV_GET_CAPABILITIES = 0x01
DEV_GET_FW_BUILD = 0x02
DEV_I2C_REG_ACCESS = 0x10

# GPS-DO interface requests
INTF_GET_GPSDO_STATUS = 0x10
INTF_GET_GPSDO_MODE = 0x12
INTF_SET_GPSDO_MODE = 0x13
INTF_GET_GPSDO_TUNE = 0x14
INTF_SET_GPSDO_TUNE = 0x15

# E1 interface requests
INTF_GET_CAPABILITIES = 0x01
INTF_SET_TX_CFG = 0x02
INTF_GET_TX_CFG = 0x03
INTF_SET_RX_CFG = 0x04
INTF_GET_RX_CFG = 0x05
INTF_GET_ERRORS = 0x06


class DeviceCapability(IntEnum):
    GPSDO = 0


class GpsdoMode(IntEnum):
    DISABLED = 0
    AUTO = 1


class GpsdoAntennaState(IntEnum):
    UNKNOWN = 0
    OK = 1
    OPEN = 2
    SHORT = 3


class GpsdoState(IntEnum):
    DISABLED = 0
    CALIBRATE = 1
    HOLD_OVER = 2
    TUNE_COARSE = 3
    TUNE_FINE = 4


class TxMode(IntEnum):
    TRANSP = 0
    TS0 = 1
    TS0_CRC4 = 2
    TS0_CRC4_E = 3


class TxTiming(IntEnum):
    LOCAL = 0
    REMOTE = 1


class TxExtLoopback(IntEnum):
    OFF = 0
    SAME = 1
    CROSS = 2


class RxMode(IntEnum):
    TRANSP = 0
    FRAME = 2
    MULTIFRAME = 3


class IrqType(IntEnum):
    ERRCNT = 1


class ErrorFlags(IntFlag):
    ALIGN_ERR = 0x01
    LOS = 0x02
    RAI = 0x04
    AIS = 0x08


def _require(layout: struct.Struct, data: bytes, what: str) -> None:
    if len(data) < layout.size:
        raise ValueError(f"{what} needs {layout.size} bytes, got {len(data)}")


@dataclass(frozen=True)
class GpsdoTune:
    """VCXO tuning values."""

    coarse: int
    fine: int

    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<HH")

    def pack(self) -> bytes:
        return self.LAYOUT.pack(self.coarse, self.fine)

    @classmethod
    def unpack(cls, data: bytes) -> "GpsdoTune":
        _require(cls.LAYOUT, data, "GPS-DO tune")
        return cls(*cls.LAYOUT.unpack_from(data))


@dataclass(frozen=True)
class GpsdoStatus:
    """GPS-DO status report; older firmware omits the accumulated error."""

    state: GpsdoState
    antenna_state: GpsdoAntennaState
    valid_fix: bool
    mode: GpsdoMode
    tune: GpsdoTune
    freq_est: int
    err_acc: int = 0

    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<BBBBHHIh")
    LEGACY_LAYOUT: ClassVar[struct.Struct] = struct.Struct("<BBBBHHI")

    def pack(self) -> bytes:
        return self.LAYOUT.pack(
            self.state, self.antenna_state, int(self.valid_fix), self.mode,
            self.tune.coarse, self.tune.fine, self.freq_est, self.err_acc,
        )

    @classmethod
    def unpack(cls, data: bytes) -> "GpsdoStatus":
        if len(data) >= cls.LAYOUT.size:
            *head, err_acc = cls.LAYOUT.unpack_from(data)
        else:
            _require(cls.LEGACY_LAYOUT, data, "GPS-DO status")
            head, err_acc = list(cls.LEGACY_LAYOUT.unpack_from(data)), 0
        state, antenna, fix, mode, coarse, fine, freq_est = head
        return cls(
            GpsdoState(state), GpsdoAntennaState(antenna), bool(fix), GpsdoMode(mode),
            GpsdoTune(coarse, fine), freq_est, err_acc,
        )


@dataclass(frozen=True)
class TxConfig:
    """Transmitter configuration."""

    mode: TxMode
    timing: TxTiming
    ext_loopback: TxExtLoopback
    alarm: bool

    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<BBBB")

    def pack(self) -> bytes:
        return self.LAYOUT.pack(self.mode, self.timing, self.ext_loopback, int(self.alarm))

    @classmethod
    def unpack(cls, data: bytes) -> "TxConfig":
        _require(cls.LAYOUT, data, "TX config")
        mode, timing, loopback, alarm = cls.LAYOUT.unpack_from(data)
        return cls(TxMode(mode), TxTiming(timing), TxExtLoopback(loopback), bool(alarm))


@dataclass(frozen=True)
class RxConfig:
    """Receiver configuration."""

    mode: RxMode

    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<B")

    def pack(self) -> bytes:
        return self.LAYOUT.pack(self.mode)

    @classmethod
    def unpack(cls, data: bytes) -> "RxConfig":
        _require(cls.LAYOUT, data, "RX config")
        (mode,) = cls.LAYOUT.unpack_from(data)
        return cls(RxMode(mode))


@dataclass(frozen=True)
class IrqErrors:
    """Error counters and current alarm flags."""

    crc: int
    align: int
    ovfl: int
    unfl: int
    flags: ErrorFlags

    LAYOUT: ClassVar[struct.Struct] = struct.Struct("<HHHHB")

    def pack(self) -> bytes:
        return self.LAYOUT.pack(self.crc, self.align, self.ovfl, self.unfl, self.flags)

    @classmethod
    def unpack(cls, data: bytes) -> "IrqErrors":
        _require(cls.LAYOUT, data, "error report")
        crc, align, ovfl, unfl, flags = cls.LAYOUT.unpack_from(data)
        return cls(crc, align, ovfl, unfl, ErrorFlags(flags))


@dataclass(frozen=True)
class Irq:
    """Message received on the interrupt endpoint."""

    irq_type: IrqType
    errors: IrqErrors

    def pack(self) -> bytes:
        return bytes([self.irq_type]) + self.errors.pack()

    @classmethod
    def unpack(cls, data: bytes) -> "Irq":
        if not data:
            raise ValueError("interrupt message is empty")
        return cls(IrqType(data[0]), IrqErrors.unpack(data[1:]))