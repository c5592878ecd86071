"""WebSocket endpoint for live device monitoring and control."""

import json
import logging
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.dependencies import authenticate_token
from app.core import database
from app.core.exceptions import AppError, NotFoundError, ValidationError
from app.core.messages import (
    CHANNEL_DEVICE_ID_REQUIRED,
    CHANNEL_INVALID_JSON,
    CHANNEL_JOIN_DENIED,
    CHANNEL_UNKNOWN_EVENT,
    DEVICE_INVALID_BATTERY,
    DEVICE_LOCATION_REQUIRED,
    ERROR_DATABASE,
    ERROR_INTERNAL_SERVER,
)
from app.devices import events
from app.devices.channel import device_channel, device_room, rooms_for_role
from app.devices.registry import DeviceRegistry, parse_device_id
from app.models.user import User


logger = logging.getLogger("app.devices.websocket")

router = APIRouter()

Handler = Callable[[WebSocket, User, Dict[str, Any]], Awaitable[None]]


def _bearer_from_header(websocket: WebSocket) -> str | None:
    header = websocket.headers.get("authorization")
    if header and header.lower().startswith("bearer "):
        return header[7:].strip()
    return None


def _require_device_id(data: Dict[str, Any]) -> str:
    device_id = data.get("deviceId")
    if not device_id:
        raise ValidationError(CHANNEL_DEVICE_ID_REQUIRED)
    return str(device_id)


async def handle_join(websocket: WebSocket, user: User, data: Dict[str, Any]) -> None:
    device_id = _require_device_id(data)
    with database.SessionLocal() as db:
        try:
            device = DeviceRegistry(db).get(user, device_id)
        except NotFoundError:
            raise NotFoundError(CHANNEL_JOIN_DENIED)
    device_channel.enroll(websocket, [device_room(device.id)])
    logger.info("Joined device monitoring: user_id=%s, device_id=%s", user.id, device.id)
    await device_channel.send(websocket, events.DEVICE_STATUS, events.serialize_device(device))


async def handle_leave(websocket: WebSocket, user: User, data: Dict[str, Any]) -> None:
    # Rooms are keyed by the canonical id, whatever casing the client used to join
    device_id = parse_device_id(_require_device_id(data))
    device_channel.remove(websocket, device_room(device_id))


async def handle_control(websocket: WebSocket, user: User, data: Dict[str, Any]) -> None:
    device_id = _require_device_id(data)
    with database.SessionLocal() as db:
        device = DeviceRegistry(db).control(user, device_id, data.get("action"), data.get("parameters"))
    await events.publish_status(device)


async def handle_battery(websocket: WebSocket, user: User, data: Dict[str, Any]) -> None:
    device_id = _require_device_id(data)
    battery = data.get("battery")
    if isinstance(battery, bool) or not isinstance(battery, (int, float)):
        raise ValidationError(DEVICE_INVALID_BATTERY)
    with database.SessionLocal() as db:
        device = DeviceRegistry(db).report_battery(user, device_id, battery)
    await events.publish_battery(device)


async def handle_location(websocket: WebSocket, user: User, data: Dict[str, Any]) -> None:
    device_id = _require_device_id(data)
    location = data.get("location")
    if not isinstance(location, str) or not location.strip():
        raise ValidationError(DEVICE_LOCATION_REQUIRED)
    with database.SessionLocal() as db:
        device = DeviceRegistry(db).report_location(user, device_id, location)
    await events.publish_location(device)


HANDLERS: Dict[str, Handler] = {
    "join-device-monitoring": handle_join,
    "leave-device-monitoring": handle_leave,
    "device-control": handle_control,
    "update-battery": handle_battery,
    "update-location": handle_location,
}


async def _dispatch(websocket: WebSocket, user: User, raw: str) -> None:
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        await device_channel.send_error(websocket, CHANNEL_INVALID_JSON)
        return
    if not isinstance(message, dict):
        await device_channel.send_error(websocket, CHANNEL_INVALID_JSON)
        return

    handler = HANDLERS.get(message.get("type"))
    if handler is None:
        await device_channel.send_error(websocket, CHANNEL_UNKNOWN_EVENT)
        return

    data = message.get("data")
    if not isinstance(data, dict):
        data = message

    try:
        await handler(websocket, user, data)
    except AppError as e:
        await device_channel.send_error(websocket, e.message)
    except SQLAlchemyError:
        logger.exception("Database error handling '%s'", message.get("type"))
        await device_channel.send_error(websocket, ERROR_DATABASE)
    except Exception:
        logger.exception("Unexpected error handling '%s'", message.get("type"))
        await device_channel.send_error(websocket, ERROR_INTERNAL_SERVER)


@router.websocket("/ws/devices")
async def device_websocket(
    websocket: WebSocket,
    token: str | None = Query(None),
):
    """
    WebSocket endpoint for device monitoring.

    Connection URL: ws://localhost:8000/api/ws/devices?token={access_token}

    Message Format (Client → Server):
    {
        "type": "join-device-monitoring" | "leave-device-monitoring" | "device-control"
                | "update-battery" | "update-location",
        "data": {"deviceId": "...", ...}
    }

    Message Format (Server → Client):
    {
        "type": "connected" | "device-status" | "device-status-update" | "battery-update"
                | "low-battery-alert" | "location-update" | "device-deleted" | "error",
        "data": {...},
        "timestamp": "..."
    }
    """
    try:
        with database.SessionLocal() as db:
            user = authenticate_token(db, token or _bearer_from_header(websocket))
    except AppError as e:
        logger.warning("WebSocket authentication failed: %s", e.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    rooms = rooms_for_role(user.id, user.role)
    device_channel.enroll(websocket, rooms)
    logger.info("Device channel connected: user_id=%s, rooms=%s", user.id, rooms)
    await device_channel.send(websocket, "connected", {"userId": str(user.id), "rooms": rooms})

    try:
        while True:
            raw = await websocket.receive_text()
            await _dispatch(websocket, user, raw)
    except WebSocketDisconnect:
        logger.info("Device channel disconnected: user_id=%s", user.id)
    finally:
        device_channel.disconnect(websocket)
