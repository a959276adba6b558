# models.py
"""
Dataclasses and enums for everything the protocol layer produces.
Readings and sensor snapshots are frozen: once decoded they never change.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Tuple

GLUCOSE_UNIT = "mg/dL"


# ----------------------------------------------------------------------
# Enums
# ----------------------------------------------------------------------
class SensorState(Enum):
    Unknown = 0
    NotActivated = 1
    Activating = 2
    Active = 3
    Expired = 4
    Shutdown = 5
    Failure = 6

    @classmethod
    def from_byte(cls, value: int) -> "SensorState":
        """Map the raw state byte; anything outside 1..6 is ``Unknown``."""
        try:
            return cls(value)
        except ValueError:
            return cls.Unknown

    @property
    def label(self) -> str:
        return _STATE_LABELS[self]


_STATE_LABELS = {
    SensorState.Unknown: "Unknown",
    SensorState.NotActivated: "Not activated",
    SensorState.Activating: "Activating",
    SensorState.Active: "Active",
    SensorState.Expired: "Expired",
    SensorState.Shutdown: "Shutdown",
    SensorState.Failure: "Failure",
}


class TrendArrow(Enum):
    Unknown = 0
    RisingQuickly = 1
    Rising = 2
    Stable = 3
    Falling = 4
    FallingQuickly = 5

    @classmethod
    def from_byte(cls, value: int) -> "TrendArrow":
        """Values above 5 are clamped to ``FallingQuickly``."""
        return cls(min(max(value, 0), 5))

    @property
    def label(self) -> str:
        return _TREND_LABELS[self]


_TREND_LABELS = {
    TrendArrow.Unknown: "Unknown",
    TrendArrow.RisingQuickly: "Rising quickly",
    TrendArrow.Rising: "Rising",
    TrendArrow.Stable: "Stable",
    TrendArrow.Falling: "Falling",
    TrendArrow.FallingQuickly: "Falling quickly",
}


# ----------------------------------------------------------------------
# Dataclasses
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class GlucoseReading:
    """One timestamped glucose value. Uniqueness key is ``timestamp``."""
    timestamp: datetime                     # timezone-aware, UTC
    value: float                            # mg/dL
    unit: str = GLUCOSE_UNIT

    @classmethod
    def from_raw(cls, epoch_s: int, glucose_raw: int) -> "GlucoseReading":
        """Build a reading from the wire fields (uint32 seconds, uint16 mg/dL x 10)."""
        return cls(
            timestamp=datetime.fromtimestamp(epoch_s, tz=timezone.utc),
            value=glucose_raw / 10,
        )

    @property
    def label(self) -> str:
        """Short ``HH:MM`` label used for chart axes."""
        return self.timestamp.strftime("%H:%M")


@dataclass(frozen=True)
class SensorAge:
    minutes: int                            # minutes since activation

    @property
    def days(self) -> int:
        return self.minutes // (60 * 24)

    @property
    def hours(self) -> int:
        return (self.minutes % (60 * 24)) // 60

    @property
    def remaining_minutes(self) -> int:
        return self.minutes % 60

    @property
    def formatted(self) -> str:
        return f"{self.days}d {self.hours}h {self.remaining_minutes}m"


@dataclass(frozen=True)
class SensorInfo:
    """Snapshot decoded from one complete tag-memory scan."""
    serial_number: str
    sensor_start_time: datetime
    current_glucose: float
    trend: TrendArrow
    sensor_state: SensorState
    sensor_age: SensorAge
    historical_readings: Tuple[GlucoseReading, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class KeyPair:
    """Per-sensor AES keys plus the auth code they were derived from."""
    encryption_key: bytes                   # 16 bytes, discriminator 0x01
    decryption_key: bytes                   # 16 bytes, discriminator 0x02
    mac: bytes = b""                        # 8-byte auth code

    def __repr__(self) -> str:
        # keys stay out of logs and tracebacks
        return f"KeyPair(mac={self.mac.hex()})"
