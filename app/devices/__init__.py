"""Device fleet registry, control commands and live monitoring channel."""

from .channel import DeviceChannelManager, device_channel
from .control import CONTROL_COMMANDS, clamp_battery, is_online_for, resolve_command
from .registry import DeviceRegistry

__all__ = [
    "CONTROL_COMMANDS",
    "DeviceChannelManager",
    "DeviceRegistry",
    "clamp_battery",
    "device_channel",
    "is_online_for",
    "resolve_command",
]
