"""Service tickets raised by customers and worked by technicians."""

import logging
import uuid
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user
from app.core.database import get_db
from app.core.exceptions import ForbiddenError, NotFoundError, ValidationError
from app.core.messages import (
    AUTH_INSUFFICIENT_PERMISSIONS,
    TICKET_CREATED,
    TICKET_INVALID_TRANSITION,
    TICKET_NOT_FOUND,
    TICKET_UPDATED,
)
from app.core.roles import UserRole, has_at_least
from app.core.schemas import CamelModel, pagination, success_response
from app.devices.registry import DeviceRegistry
from app.models.service_ticket import ServiceTicket, TicketPriority, TicketStatus
from app.models.user import User


logger = logging.getLogger("app.service")

router = APIRouter(prefix="/service", tags=["service"])

ALLOWED_TRANSITIONS = {
    TicketStatus.OPEN: {TicketStatus.IN_PROGRESS, TicketStatus.CANCELLED},
    TicketStatus.IN_PROGRESS: {TicketStatus.COMPLETED, TicketStatus.CANCELLED},
    TicketStatus.COMPLETED: set(),
    TicketStatus.CANCELLED: set(),
}


class TicketCreate(CamelModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    priority: TicketPriority = TicketPriority.MEDIUM
    device_id: Optional[uuid.UUID] = None


class TicketStatusUpdate(CamelModel):
    status: TicketStatus
    resolution: Optional[str] = None


class TicketResponse(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    device_id: Optional[uuid.UUID] = None
    assigned_technician_id: Optional[uuid.UUID] = None
    title: str
    description: str
    priority: TicketPriority
    status: TicketStatus
    resolution: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _get_ticket(db: Session, user: User, ticket_id: str) -> ServiceTicket:
    try:
        ticket_uuid = uuid.UUID(ticket_id)
    except ValueError:
        raise NotFoundError(TICKET_NOT_FOUND)
    query = db.query(ServiceTicket).filter(ServiceTicket.id == ticket_uuid)
    if not has_at_least(user.role, UserRole.TECHNICIAN):
        query = query.filter(ServiceTicket.user_id == user.id)
    ticket = query.first()
    if ticket is None:
        raise NotFoundError(TICKET_NOT_FOUND)
    return ticket


def check_transition(current: TicketStatus | str, target: TicketStatus) -> None:
    current = TicketStatus(current)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise ValidationError(TICKET_INVALID_TRANSITION.format(current=current.value, target=target.value))


@router.post("/tickets", status_code=status.HTTP_201_CREATED)
def create_ticket(
    payload: TicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.device_id is not None:
        # Only the owner may open a ticket against a device
        DeviceRegistry(db).get(current_user, payload.device_id)

    ticket = ServiceTicket(
        user_id=current_user.id,
        device_id=payload.device_id,
        title=payload.title.strip(),
        description=payload.description.strip(),
        priority=payload.priority.value,
    )
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info("Service ticket opened: ticket_id=%s, user_id=%s", ticket.id, current_user.id)
    return success_response({"ticket": TicketResponse.model_validate(ticket).to_json()}, TICKET_CREATED)


@router.get("/tickets")
def list_tickets(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(ServiceTicket)
    if not has_at_least(current_user.role, UserRole.TECHNICIAN):
        query = query.filter(ServiceTicket.user_id == current_user.id)
    if status_filter is not None:
        query = query.filter(ServiceTicket.status == status_filter.value)

    total = query.count()
    tickets = query.order_by(ServiceTicket.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {
            "tickets": [TicketResponse.model_validate(t).to_json() for t in tickets],
            "pagination": pagination(page, limit, total),
        }
    )


@router.get("/tickets/{ticket_id}")
def get_ticket(
    ticket_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ticket = _get_ticket(db, current_user, ticket_id)
    return success_response({"ticket": TicketResponse.model_validate(ticket).to_json()})


@router.put("/tickets/{ticket_id}/status")
def update_ticket_status(
    ticket_id: str,
    payload: TicketStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Technicians move tickets through their lifecycle; owners may only cancel open tickets."""
    ticket = _get_ticket(db, current_user, ticket_id)
    is_technician = has_at_least(current_user.role, UserRole.TECHNICIAN)
    owner_cancelling = (
        ticket.user_id == current_user.id
        and payload.status == TicketStatus.CANCELLED
        and ticket.status == TicketStatus.OPEN.value
    )
    if not (is_technician or owner_cancelling):
        raise ForbiddenError(AUTH_INSUFFICIENT_PERMISSIONS)

    check_transition(ticket.status, payload.status)

    ticket.status = payload.status.value
    if payload.status == TicketStatus.IN_PROGRESS and is_technician:
        ticket.assigned_technician_id = current_user.id
    if payload.resolution is not None:
        ticket.resolution = payload.resolution
    db.add(ticket)
    db.commit()
    db.refresh(ticket)
    logger.info("Service ticket %s moved to %s by %s", ticket.id, ticket.status, current_user.id)
    return success_response({"ticket": TicketResponse.model_validate(ticket).to_json()}, TICKET_UPDATED)
