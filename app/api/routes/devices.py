"""Device REST endpoints.

Every mutation is also pushed to the device's monitoring room, so REST clients
and WebSocket clients observe the same stream of updates.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user
from app.core.database import get_db
from app.core.messages import (
    DEVICE_BATTERY_UPDATED,
    DEVICE_CONTROL_SUCCESS,
    DEVICE_CREATED,
    DEVICE_DELETED,
    DEVICE_LOCATION_UPDATED,
    DEVICE_UPDATED,
)
from app.core.schemas import pagination, success_response
from app.devices import events
from app.devices.registry import DeviceRegistry
from app.devices.schemas import (
    BatteryUpdate,
    DeviceControlRequest,
    DeviceCreate,
    DeviceLogResponse,
    DeviceStats,
    DeviceUpdate,
    LocationUpdate,
)
from app.models.device import DeviceStatus
from app.models.user import User


router = APIRouter(prefix="/devices", tags=["devices"])


@router.get("")
def list_devices(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: DeviceStatus | None = Query(None, alias="status"),
    type: str | None = None,
    online: bool | None = None,
    search: str | None = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the requester's devices with optional filters."""
    devices, total = DeviceRegistry(db).list(
        current_user,
        page=page,
        limit=limit,
        status=status_filter,
        device_type=type,
        online=online,
        search=search,
    )
    return success_response(
        {
            "devices": [events.serialize_device(d) for d in devices],
            "pagination": pagination(page, limit, total),
        }
    )


@router.get("/stats/overview")
def device_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    stats = DeviceRegistry(db).stats(current_user)
    return success_response({"stats": DeviceStats(**stats).to_json()})


@router.get("/{device_id}")
def get_device(
    device_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    device = DeviceRegistry(db).get(current_user, device_id)
    return success_response({"device": events.serialize_device(device)})


@router.get("/{device_id}/logs")
def get_device_logs(
    device_id: str,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    logs = DeviceRegistry(db).logs(current_user, device_id, limit=limit)
    return success_response({"logs": [DeviceLogResponse.model_validate(log).to_json() for log in logs]})


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_device(
    payload: DeviceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    device = DeviceRegistry(db).create(current_user, payload)
    await events.publish_status(device)
    return success_response({"device": events.serialize_device(device)}, DEVICE_CREATED)


@router.put("/{device_id}")
async def update_device(
    device_id: str,
    payload: DeviceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    device = DeviceRegistry(db).update(current_user, device_id, payload)
    await events.publish_status(device)
    return success_response({"device": events.serialize_device(device)}, DEVICE_UPDATED)


@router.delete("/{device_id}")
async def delete_device(
    device_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    removed_id = DeviceRegistry(db).delete(current_user, device_id)
    await events.publish_deleted(removed_id)
    return success_response(message=DEVICE_DELETED)


@router.post("/{device_id}/control")
async def control_device(
    device_id: str,
    payload: DeviceControlRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    device = DeviceRegistry(db).control(current_user, device_id, payload.action, payload.parameters)
    await events.publish_status(device)
    return success_response(
        {"device": events.serialize_device(device)},
        DEVICE_CONTROL_SUCCESS.format(action=payload.action.strip().lower()),
    )


@router.put("/{device_id}/location")
async def update_location(
    device_id: str,
    payload: LocationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    device = DeviceRegistry(db).report_location(current_user, device_id, payload.location)
    await events.publish_location(device)
    return success_response({"device": events.serialize_device(device)}, DEVICE_LOCATION_UPDATED)


@router.put("/{device_id}/battery")
async def update_battery(
    device_id: str,
    payload: BatteryUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    device = DeviceRegistry(db).report_battery(current_user, device_id, payload.battery)
    await events.publish_battery(device)
    return success_response({"device": events.serialize_device(device)}, DEVICE_BATTERY_UPDATED)
