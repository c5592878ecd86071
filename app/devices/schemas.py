"""Pydantic schemas for devices."""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import Field

from app.core.schemas import CamelModel
from app.models.device import DeviceStatus


class DeviceCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    status: Optional[DeviceStatus] = None
    battery: Optional[float] = None
    location: Optional[str] = Field(None, max_length=500)
    tasks: Optional[str] = None
    product_id: Optional[UUID] = None


class DeviceUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[str] = Field(None, max_length=100)
    status: Optional[DeviceStatus] = None
    battery: Optional[float] = None
    location: Optional[str] = Field(None, max_length=500)
    tasks: Optional[str] = None
    product_id: Optional[UUID] = None


class DeviceControlRequest(CamelModel):
    action: str = Field(..., min_length=1)
    parameters: Optional[Dict[str, Any]] = None


class LocationUpdate(CamelModel):
    location: str = Field(..., min_length=1, max_length=500)


class BatteryUpdate(CamelModel):
    battery: float


class DeviceResponse(CamelModel):
    id: UUID
    name: str
    type: Optional[str] = None
    status: DeviceStatus
    battery: int
    location: Optional[str] = None
    is_online: bool
    tasks: Optional[str] = None
    last_seen: Optional[datetime] = None
    owner_user_id: UUID
    product_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DeviceLogResponse(CamelModel):
    id: UUID
    device_id: UUID
    level: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: Optional[datetime] = None


class DeviceStats(CamelModel):
    total: int
    active: int
    online: int
    maintenance: int
    low_battery: int
