"""Device control command table and state helpers.

The command table is deliberately flat: any command is accepted from any
current status and simply overwrites status and tasks.
"""

import math
from typing import NamedTuple

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.messages import DEVICE_INVALID_ACTION, DEVICE_INVALID_BATTERY
from app.models.device import DeviceStatus


class ControlOutcome(NamedTuple):
    status: DeviceStatus
    tasks: str


CONTROL_COMMANDS: dict[str, ControlOutcome] = {
    "start": ControlOutcome(DeviceStatus.ACTIVE, "Device started and running"),
    "stop": ControlOutcome(DeviceStatus.IDLE, "Device stopped"),
    "pause": ControlOutcome(DeviceStatus.IDLE, "Device paused"),
    "reset": ControlOutcome(DeviceStatus.IDLE, "Device reset"),
    "maintenance": ControlOutcome(DeviceStatus.MAINTENANCE, "Device in maintenance mode"),
}

OFFLINE_STATUSES = frozenset({DeviceStatus.OFFLINE, DeviceStatus.ERROR})

MIN_BATTERY = 0
MAX_BATTERY = 100


def resolve_command(action: str | None) -> ControlOutcome:
    outcome = CONTROL_COMMANDS.get((action or "").strip().lower())
    if outcome is None:
        raise ValidationError(
            DEVICE_INVALID_ACTION,
            errors=[{"field": "action", "allowed": sorted(CONTROL_COMMANDS)}],
        )
    return outcome


def clamp_battery(value: int | float) -> int:
    """Clamp into [0, 100] before rounding, so infinite reports land on a bound."""
    if isinstance(value, float) and math.isnan(value):
        raise ValidationError(DEVICE_INVALID_BATTERY, errors=[{"field": "battery"}])
    return int(round(max(MIN_BATTERY, min(MAX_BATTERY, value))))


def is_online_for(status: DeviceStatus | str) -> bool:
    return DeviceStatus(status) not in OFFLINE_STATUSES


def is_low_battery(battery: int) -> bool:
    return battery <= settings.LOW_BATTERY_THRESHOLD
