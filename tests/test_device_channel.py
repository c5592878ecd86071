import asyncio

import pytest
from fastapi import WebSocketDisconnect

from app.core.roles import UserRole
from app.devices.channel import (
    ADMIN_ROOM,
    TECHNICIAN_ROOM,
    DeviceChannelManager,
    device_channel,
    device_room,
    rooms_for_role,
    user_room,
)


def _connect(client, headers):
    token = headers["Authorization"].split(" ", 1)[1]
    return client.websocket_connect(f"/api/ws/devices?token={token}")


def _join(ws, device_id):
    ws.send_json({"type": "join-device-monitoring", "data": {"deviceId": device_id}})
    return ws.receive_json()


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("connection closed")
        self.sent.append(message)


def test_connection_without_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/api/ws/devices") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_connection_with_bad_token_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/api/ws/devices?token=not-a-jwt") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_connected_event_lists_rooms(client, make_user):
    user, headers = make_user("admin@example.com", role=UserRole.ADMIN)
    with _connect(client, headers) as ws:
        event = ws.receive_json()
    assert event["type"] == "connected"
    assert event["timestamp"]
    assert event["data"]["userId"] == str(user.id)
    assert event["data"]["rooms"] == [user_room(user.id), ADMIN_ROOM, TECHNICIAN_ROOM]


def test_bearer_header_is_accepted(client, make_user):
    _, headers = make_user("owner@example.com")
    with client.websocket_connect("/api/ws/devices", headers=headers) as ws:
        assert ws.receive_json()["type"] == "connected"


def test_join_returns_current_device_state(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)
    with _connect(client, headers) as ws:
        ws.receive_json()
        snapshot = _join(ws, device["id"])
    assert snapshot["type"] == "device-status"
    assert snapshot["data"]["id"] == device["id"]
    assert snapshot["data"]["status"] == "ACTIVE"


def test_join_foreign_device_is_denied(client, make_user, create_device):
    _, owner = make_user("owner@example.com")
    _, stranger = make_user("stranger@example.com")
    device = create_device(owner)

    with _connect(client, stranger) as ws:
        ws.receive_json()
        denied = _join(ws, device["id"])
        assert denied["type"] == "error"
        assert denied["data"]["message"] == "Device not found or access denied"
        assert device_channel.room_size(device_room(device["id"])) == 0

        ws.send_json({"type": "device-control", "data": {"deviceId": device["id"], "action": "stop"}})
        rejected = ws.receive_json()
        assert rejected["type"] == "error"
        assert rejected["data"]["message"] == "Device not found"

    state = client.get(f"/api/devices/{device['id']}", headers=owner).json()["data"]["device"]
    assert state["status"] == "ACTIVE"


def test_control_is_broadcast_to_every_monitor(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers, status="IDLE")

    with _connect(client, headers) as first, _connect(client, headers) as second:
        first.receive_json()
        second.receive_json()
        _join(first, device["id"])
        _join(second, device["id"])

        first.send_json({"type": "device-control", "data": {"deviceId": device["id"], "action": "start"}})
        for ws in (first, second):
            update = ws.receive_json()
            assert update["type"] == "device-status-update"
            assert update["data"]["id"] == device["id"]
            assert update["data"]["status"] == "ACTIVE"
            assert update["data"]["tasks"] == "Device started and running"


def test_low_battery_report_raises_alert(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers, name="Bot1")

    with _connect(client, headers) as reporter, _connect(client, headers) as watcher:
        reporter.receive_json()
        watcher.receive_json()
        _join(reporter, device["id"])
        _join(watcher, device["id"])

        reporter.send_json({"type": "update-battery", "data": {"deviceId": device["id"], "battery": 15}})
        for ws in (reporter, watcher):
            battery = ws.receive_json()
            assert battery["type"] == "battery-update"
            assert battery["data"]["deviceId"] == device["id"]
            assert battery["data"]["battery"] == 15
            assert battery["data"]["lastSeen"]

            alert = ws.receive_json()
            assert alert["type"] == "low-battery-alert"
            assert alert["data"]["battery"] == 15
            assert "Bot1" in alert["data"]["message"]


def test_location_report_is_broadcast(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)
    with _connect(client, headers) as ws:
        ws.receive_json()
        _join(ws, device["id"])
        ws.send_json({"type": "update-location", "data": {"deviceId": device["id"], "location": "Dock 4"}})
        update = ws.receive_json()
    assert update["type"] == "location-update"
    assert update["data"]["location"] == "Dock 4"


def test_rest_mutations_reach_channel_subscribers(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)

    with _connect(client, headers) as ws:
        ws.receive_json()
        _join(ws, device["id"])

        client.post(f"/api/devices/{device['id']}/control", json={"action": "maintenance"}, headers=headers)
        update = ws.receive_json()
        assert update["type"] == "device-status-update"
        assert update["data"]["status"] == "MAINTENANCE"

        client.put(f"/api/devices/{device['id']}/battery", json={"battery": 80}, headers=headers)
        assert ws.receive_json()["type"] == "battery-update"

        client.delete(f"/api/devices/{device['id']}", headers=headers)
        deleted = ws.receive_json()
        assert deleted["type"] == "device-deleted"
        assert deleted["data"]["deviceId"] == device["id"]


def test_leave_stops_updates(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)

    with _connect(client, headers) as ws:
        ws.receive_json()
        _join(ws, device["id"])
        ws.send_json({"type": "leave-device-monitoring", "data": {"deviceId": device["id"]}})

        # A round trip guarantees the leave was processed
        ws.send_json({"type": "join-device-monitoring", "data": {}})
        assert ws.receive_json()["data"]["message"] == "deviceId is required"
        assert device_channel.room_size(device_room(device["id"])) == 0


def test_invalid_messages_report_errors(client, make_user):
    _, headers = make_user("owner@example.com")
    with _connect(client, headers) as ws:
        ws.receive_json()

        ws.send_text("{not json")
        assert ws.receive_json()["data"]["message"] == "Invalid JSON format"

        ws.send_json({"type": "self-destruct", "data": {}})
        assert ws.receive_json()["data"]["message"] == "Unknown event type"

        ws.send_json({"type": "device-control", "data": {"deviceId": "missing", "action": "start"}})
        assert ws.receive_json()["type"] == "error"


def test_rooms_for_role():
    assert rooms_for_role("u1", UserRole.CUSTOMER) == ["user:u1"]
    assert rooms_for_role("u1", "TECHNICIAN") == ["user:u1", TECHNICIAN_ROOM]
    assert rooms_for_role("u1", "ADMIN") == ["user:u1", ADMIN_ROOM, TECHNICIAN_ROOM]


def test_manager_membership_bookkeeping():
    manager = DeviceChannelManager()
    a, b = FakeWebSocket(), FakeWebSocket()

    manager.enroll(a, ["user:1", "device:x"])
    manager.enroll(b, ["device:x"])
    assert manager.room_size("device:x") == 2
    assert manager.rooms_of(a) == {"user:1", "device:x"}

    manager.remove(a, "device:x")
    assert not manager.is_member(a, "device:x")
    assert manager.room_size("device:x") == 1

    manager.disconnect(b)
    assert manager.room_size("device:x") == 0
    assert manager.rooms_of(b) == set()


def test_manager_broadcast_drops_failed_connections():
    manager = DeviceChannelManager()
    healthy, broken = FakeWebSocket(), FakeWebSocket(fail=True)
    manager.enroll(healthy, ["device:x"])
    manager.enroll(broken, ["device:x", "user:2"])

    sent = asyncio.run(manager.broadcast("device:x", "device-status-update", {"id": "x"}))

    assert sent == 1
    assert healthy.sent[0]["type"] == "device-status-update"
    assert healthy.sent[0]["data"] == {"id": "x"}
    assert "timestamp" in healthy.sent[0]
    assert manager.rooms_of(broken) == set()
    assert manager.room_size("user:2") == 0


def test_manager_broadcast_to_empty_room():
    manager = DeviceChannelManager()
    assert asyncio.run(manager.broadcast("device:none", "device-deleted", {})) == 0


def test_overflowing_battery_report_over_channel(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)
    with _connect(client, headers) as ws:
        ws.receive_json()
        _join(ws, device["id"])
        ws.send_text(
            '{"type": "update-battery", "data": {"deviceId": "%s", "battery": 1e400}}' % device["id"]
        )
        update = ws.receive_json()
    assert update["type"] == "battery-update"
    assert update["data"]["battery"] == 100


def test_leave_with_uppercase_id_leaves_canonical_room(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)
    shouted = device["id"].upper()

    with _connect(client, headers) as ws:
        ws.receive_json()
        assert _join(ws, shouted)["type"] == "device-status"
        assert device_channel.room_size(device_room(device["id"])) == 1

        ws.send_json({"type": "leave-device-monitoring", "data": {"deviceId": shouted}})
        ws.send_json({"type": "leave-device-monitoring", "data": {"deviceId": "not-a-uuid"}})
        malformed = ws.receive_json()
        assert malformed["type"] == "error"
        assert malformed["data"]["message"] == "Device not found"
        assert device_channel.room_size(device_room(device["id"])) == 0


def test_delete_dissolves_device_room(client, make_user, create_device):
    _, headers = make_user("owner@example.com")
    device = create_device(headers)
    with _connect(client, headers) as ws:
        ws.receive_json()
        _join(ws, device["id"])

        client.delete(f"/api/devices/{device['id']}", headers=headers)
        assert ws.receive_json()["type"] == "device-deleted"
        assert device_channel.room_size(device_room(device["id"])) == 0
        assert not device_channel.is_member(ws, device_room(device["id"]))


def test_manager_close_room_keeps_other_memberships():
    manager = DeviceChannelManager()
    a, b = FakeWebSocket(), FakeWebSocket()
    manager.enroll(a, ["user:1", "device:x"])
    manager.enroll(b, ["device:x"])

    assert manager.close_room("device:x") == 2
    assert manager.room_size("device:x") == 0
    assert manager.rooms_of(a) == {"user:1"}
    assert manager.close_room("device:x") == 0
