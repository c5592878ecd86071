"""Owner-scoped persistence for devices.

Every lookup filters on the requesting user's id, so a device owned by someone
else is indistinguishable from a device that does not exist.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import NotFoundError, ValidationError
from app.core.messages import DEVICE_NOT_FOUND, PRODUCT_NOT_FOUND
from app.models.device import Device, DeviceLog, DeviceLogLevel, DeviceStatus
from app.models.product import Product
from app.models.user import User

from .control import clamp_battery, is_low_battery, is_online_for, resolve_command
from .schemas import DeviceCreate, DeviceUpdate


logger = logging.getLogger("app.devices.registry")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_device_id(device_id: str | uuid.UUID | None) -> uuid.UUID:
    if isinstance(device_id, uuid.UUID):
        return device_id
    try:
        return uuid.UUID(str(device_id))
    except (TypeError, ValueError):
        raise NotFoundError(DEVICE_NOT_FOUND)


class DeviceRegistry:
    """Reads and writes devices on behalf of their owner."""

    def __init__(self, db: Session):
        self.db = db

    def _owned(self, user: User):
        return self.db.query(Device).filter(Device.owner_user_id == user.id)

    def _log(
        self,
        device: Device,
        message: str,
        details: Optional[dict[str, Any]] = None,
        level: DeviceLogLevel = DeviceLogLevel.INFO,
    ) -> None:
        self.db.add(
            DeviceLog(
                device_id=device.id,
                level=level.value,
                message=message,
                details=details or {},
            )
        )

    def _save(self, device: Device) -> Device:
        self.db.add(device)
        self.db.commit()
        self.db.refresh(device)
        return device

    def _ensure_product(self, product_id: Optional[uuid.UUID]) -> None:
        if product_id is None:
            return
        if self.db.get(Product, product_id) is None:
            raise ValidationError(PRODUCT_NOT_FOUND, errors=[{"field": "productId"}])

    def get(self, user: User, device_id: str | uuid.UUID) -> Device:
        device = self._owned(user).filter(Device.id == parse_device_id(device_id)).first()
        if device is None:
            raise NotFoundError(DEVICE_NOT_FOUND)
        return device

    def list(
        self,
        user: User,
        *,
        page: int = 1,
        limit: int = 20,
        status: Optional[DeviceStatus] = None,
        device_type: Optional[str] = None,
        online: Optional[bool] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Device], int]:
        query = self._owned(user)
        if status is not None:
            query = query.filter(Device.status == DeviceStatus(status).value)
        if device_type:
            query = query.filter(Device.type == device_type)
        if online is not None:
            query = query.filter(Device.is_online.is_(online))
        if search:
            query = query.filter(Device.name.ilike(f"%{search.strip()}%"))

        total = query.count()
        devices = (
            query.order_by(Device.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return devices, total

    def create(self, user: User, data: DeviceCreate) -> Device:
        self._ensure_product(data.product_id)
        status = data.status or DeviceStatus.ACTIVE
        device = Device(
            id=uuid.uuid4(),
            name=data.name.strip(),
            type=data.type,
            status=status.value,
            battery=clamp_battery(data.battery) if data.battery is not None else 100,
            location=data.location,
            tasks=data.tasks,
            is_online=is_online_for(status),
            last_seen=_utcnow(),
            owner_user_id=user.id,
            product_id=data.product_id,
        )
        self.db.add(device)
        self.db.flush()
        self._log(device, "Device created successfully")
        device = self._save(device)
        logger.info("Device created: device_id=%s, owner=%s", device.id, user.id)
        return device

    def update(self, user: User, device_id: str | uuid.UUID, data: DeviceUpdate) -> Device:
        device = self.get(user, device_id)
        changes = data.model_dump(exclude_unset=True)

        if "product_id" in changes:
            self._ensure_product(changes["product_id"])
        if changes.get("battery") is not None:
            changes["battery"] = clamp_battery(changes["battery"])
        if changes.get("status") is not None:
            changes["status"] = DeviceStatus(changes["status"]).value

        for field, value in changes.items():
            # name, status and battery are NOT NULL; an explicit null leaves them as they are
            if value is None and field in ("name", "status", "battery"):
                continue
            setattr(device, field, value)

        device.is_online = is_online_for(device.status)
        device.last_seen = _utcnow()
        self._log(device, "Device updated", details={"fields": sorted(changes)})
        return self._save(device)

    def delete(self, user: User, device_id: str | uuid.UUID) -> uuid.UUID:
        device = self.get(user, device_id)
        removed_id = device.id
        self.db.query(DeviceLog).filter(DeviceLog.device_id == removed_id).delete(
            synchronize_session=False
        )
        self.db.delete(device)
        self.db.commit()
        logger.info("Device deleted: device_id=%s, owner=%s", removed_id, user.id)
        return removed_id

    def control(
        self,
        user: User,
        device_id: str | uuid.UUID,
        action: str,
        parameters: Optional[dict[str, Any]] = None,
    ) -> Device:
        outcome = resolve_command(action)
        device = self.get(user, device_id)

        device.status = outcome.status.value
        device.tasks = outcome.tasks
        device.is_online = is_online_for(outcome.status)
        device.last_seen = _utcnow()
        self._log(
            device,
            f"Control command '{action.strip().lower()}' executed",
            details={"status": device.status, "parameters": parameters or {}},
        )
        device = self._save(device)
        logger.info(
            "Device control: device_id=%s, action=%s, status=%s",
            device.id,
            action,
            device.status,
        )
        return device

    def report_battery(self, user: User, device_id: str | uuid.UUID, battery: int | float) -> Device:
        device = self.get(user, device_id)
        device.battery = clamp_battery(battery)
        device.last_seen = _utcnow()
        low = is_low_battery(device.battery)
        self._log(
            device,
            f"Battery level updated to {device.battery}%",
            details={"reported": battery},
            level=DeviceLogLevel.WARNING if low else DeviceLogLevel.INFO,
        )
        return self._save(device)

    def report_location(self, user: User, device_id: str | uuid.UUID, location: str) -> Device:
        device = self.get(user, device_id)
        device.location = location
        device.last_seen = _utcnow()
        self._log(device, "Location updated", details={"location": location})
        return self._save(device)

    def logs(self, user: User, device_id: str | uuid.UUID, limit: int = 50) -> List[DeviceLog]:
        device = self.get(user, device_id)
        return (
            self.db.query(DeviceLog)
            .filter(DeviceLog.device_id == device.id)
            .order_by(DeviceLog.timestamp.desc())
            .limit(limit)
            .all()
        )

    def stats(self, user: User) -> dict[str, int]:
        query = self._owned(user)
        return {
            "total": query.count(),
            "active": query.filter(Device.status == DeviceStatus.ACTIVE.value).count(),
            "online": query.filter(Device.is_online.is_(True)).count(),
            "maintenance": query.filter(Device.status == DeviceStatus.MAINTENANCE.value).count(),
            "low_battery": query.filter(Device.battery <= settings.LOW_BATTERY_THRESHOLD).count(),
        }
