# config.py
"""Configuration for the Libre 2 reader.

Protocol constants are fixed by the sensor.  Policy values have defaults
and can be overridden from the environment with ``SessionConfig.from_env``.
"""

import os
from dataclasses import dataclass
from datetime import timedelta

# ----------------------------------------------------------------------
# Radio link (fixed by the sensor firmware)
# ----------------------------------------------------------------------
LIBRE2_SERVICE_UUID = "089810cc-ef89-11e9-81b4-2a2ae2dbcce4"
LIBRE2_CHARACTERISTIC_UUID = "08981338-ef89-11e9-81b4-2a2ae2dbcce4"

# ----------------------------------------------------------------------
# Policy defaults
# ----------------------------------------------------------------------
TAG_BLOCK_COUNT = 43                    # blocks 0..42
POLL_INTERVAL_S = 60.0
READING_WINDOW_HOURS = 24
BLE_SCAN_TIMEOUT_S = 10.0
DEVICE_NAME_FILTER = "Libre"
LOG_CAPACITY = 100


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class SessionConfig:
    """Policy values for one device session."""
    poll_interval_s: float = POLL_INTERVAL_S
    window_hours: float = READING_WINDOW_HOURS
    block_count: int = TAG_BLOCK_COUNT
    scan_timeout_s: float = BLE_SCAN_TIMEOUT_S
    device_name: str = DEVICE_NAME_FILTER
    log_capacity: int = LOG_CAPACITY
    clear_window_on_disconnect: bool = False
    service_uuid: str = LIBRE2_SERVICE_UUID
    characteristic_uuid: str = LIBRE2_CHARACTERISTIC_UUID

    @property
    def window(self) -> timedelta:
        return timedelta(hours=self.window_hours)

    @classmethod
    def from_env(cls) -> "SessionConfig":
        """Build a config, letting ``LIBRE2_*`` environment variables win."""
        env = os.environ
        return cls(
            poll_interval_s=float(env.get("LIBRE2_POLL_INTERVAL", POLL_INTERVAL_S)),
            window_hours=float(env.get("LIBRE2_WINDOW_HOURS", READING_WINDOW_HOURS)),
            block_count=int(env.get("LIBRE2_BLOCK_COUNT", TAG_BLOCK_COUNT)),
            scan_timeout_s=float(env.get("LIBRE2_SCAN_TIMEOUT", BLE_SCAN_TIMEOUT_S)),
            device_name=env.get("LIBRE2_DEVICE_NAME", DEVICE_NAME_FILTER),
            log_capacity=int(env.get("LIBRE2_LOG_CAPACITY", LOG_CAPACITY)),
            clear_window_on_disconnect=_env_bool(env.get("LIBRE2_CLEAR_ON_DISCONNECT", "0")),
        )
