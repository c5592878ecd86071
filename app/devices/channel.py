"""WebSocket room registry for device monitoring."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Set

from fastapi import WebSocket

from app.core.roles import UserRole, has_at_least


logger = logging.getLogger("app.devices.channel")

ADMIN_ROOM = "admins"
TECHNICIAN_ROOM = "technicians"


def user_room(user_id: str | uuid.UUID) -> str:
    return f"user:{user_id}"


def device_room(device_id: str | uuid.UUID) -> str:
    return f"device:{device_id}"


def rooms_for_role(user_id: str | uuid.UUID, role: UserRole | str) -> list[str]:
    """Rooms a freshly authenticated connection is enrolled in."""
    rooms = [user_room(user_id)]
    if has_at_least(role, UserRole.ADMIN):
        rooms.append(ADMIN_ROOM)
    if has_at_least(role, UserRole.TECHNICIAN):
        rooms.append(TECHNICIAN_ROOM)
    return rooms


class DeviceChannelManager:
    """Tracks which connections belong to which rooms and fans events out to them.

    Membership only changes through ``enroll``, ``remove`` and ``disconnect``.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = {}
        self._memberships: Dict[WebSocket, Set[str]] = {}

    def enroll(self, websocket: WebSocket, rooms: Iterable[str]) -> None:
        joined = self._memberships.setdefault(websocket, set())
        for room in rooms:
            self._rooms.setdefault(room, set()).add(websocket)
            joined.add(room)

    def remove(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        joined = self._memberships.get(websocket)
        if joined is not None:
            joined.discard(room)

    def disconnect(self, websocket: WebSocket) -> None:
        """Drop a connection from every room it joined."""
        rooms = self._memberships.pop(websocket, set())
        for room in rooms:
            members = self._rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                del self._rooms[room]
        if rooms:
            logger.info("Device channel connection removed from %d rooms", len(rooms))

    def close_room(self, room: str) -> int:
        """Remove every member from a room. Returns how many connections were removed."""
        members = list(self._rooms.get(room, ()))
        for websocket in members:
            self.remove(websocket, room)
        return len(members)

    def is_member(self, websocket: WebSocket, room: str) -> bool:
        return room in self._memberships.get(websocket, set())

    def rooms_of(self, websocket: WebSocket) -> Set[str]:
        return set(self._memberships.get(websocket, set()))

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, set()))

    @staticmethod
    def build_event(event: str, data: Any) -> dict:
        return {
            "type": event,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def send(self, websocket: WebSocket, event: str, data: Any) -> bool:
        try:
            await websocket.send_json(self.build_event(event, data))
            return True
        except Exception as e:
            logger.warning("Failed to send '%s' event: %s", event, e)
            self.disconnect(websocket)
            return False

    async def send_error(self, websocket: WebSocket, message: str) -> bool:
        return await self.send(websocket, "error", {"message": message})

    async def broadcast(self, room: str, event: str, data: Any) -> int:
        """
        Send an event to every connection in a room.

        Returns:
            Number of connections that received the event
        """
        members = self._rooms.get(room)
        if not members:
            return 0

        message = self.build_event(event, data)
        disconnected: Set[WebSocket] = set()
        sent_count = 0

        # Snapshot: a failed send mutates the room
        for connection in list(members):
            try:
                await connection.send_json(message)
                sent_count += 1
            except Exception as e:
                logger.warning("Failed to send '%s' to room %s: %s", event, room, e)
                disconnected.add(connection)

        for connection in disconnected:
            self.disconnect(connection)

        return sent_count

    async def broadcast_to_device(self, device_id: str | uuid.UUID, event: str, data: Any) -> int:
        return await self.broadcast(device_room(device_id), event, data)


# Global device channel instance
device_channel = DeviceChannelManager()
