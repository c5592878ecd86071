"""Fan-out of device mutations to the device's monitoring room.

Used by both the REST routes and the WebSocket channel so every subscriber
sees the same events regardless of which surface applied the change.
"""

import uuid

from app.core.messages import DEVICE_LOW_BATTERY
from app.models.device import Device

from .channel import DeviceChannelManager, device_channel, device_room
from .control import is_low_battery
from .schemas import DeviceResponse

DEVICE_STATUS = "device-status"
DEVICE_STATUS_UPDATE = "device-status-update"
BATTERY_UPDATE = "battery-update"
LOW_BATTERY_ALERT = "low-battery-alert"
LOCATION_UPDATE = "location-update"
DEVICE_DELETED = "device-deleted"


def serialize_device(device: Device) -> dict:
    return DeviceResponse.model_validate(device).to_json()


async def publish_status(device: Device, channel: DeviceChannelManager = device_channel) -> int:
    return await channel.broadcast_to_device(device.id, DEVICE_STATUS_UPDATE, serialize_device(device))


async def publish_battery(device: Device, channel: DeviceChannelManager = device_channel) -> int:
    sent = await channel.broadcast_to_device(
        device.id,
        BATTERY_UPDATE,
        {
            "deviceId": str(device.id),
            "battery": device.battery,
            "lastSeen": device.last_seen.isoformat() if device.last_seen else None,
            "device": serialize_device(device),
        },
    )
    if is_low_battery(device.battery):
        await channel.broadcast_to_device(
            device.id,
            LOW_BATTERY_ALERT,
            {
                "deviceId": str(device.id),
                "battery": device.battery,
                "message": DEVICE_LOW_BATTERY.format(name=device.name, battery=device.battery),
            },
        )
    return sent


async def publish_location(device: Device, channel: DeviceChannelManager = device_channel) -> int:
    return await channel.broadcast_to_device(
        device.id,
        LOCATION_UPDATE,
        {
            "deviceId": str(device.id),
            "location": device.location,
            "lastSeen": device.last_seen.isoformat() if device.last_seen else None,
            "device": serialize_device(device),
        },
    )


async def publish_deleted(device_id: uuid.UUID, channel: DeviceChannelManager = device_channel) -> int:
    """Announce the deletion, then dissolve the device room."""
    sent = await channel.broadcast_to_device(device_id, DEVICE_DELETED, {"deviceId": str(device_id)})
    channel.close_room(device_room(device_id))
    return sent
