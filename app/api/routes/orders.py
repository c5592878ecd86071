import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user, require_admin
from app.core.database import get_db
from app.core.exceptions import NotFoundError
from app.core.messages import ORDER_CANCELLED, ORDER_CREATED, ORDER_NOT_FOUND, ORDER_STATUS_UPDATED
from app.core.roles import UserRole, has_at_least
from app.core.schemas import CamelModel, pagination, success_response
from app.models.order import Order, OrderItem, OrderStatus
from app.models.user import User
from app.services import orders as order_service


router = APIRouter(prefix="/orders", tags=["orders"])


class OrderLine(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(..., ge=1, le=100)


class OrderCreate(CamelModel):
    items: Optional[List[OrderLine]] = Field(None, min_length=1)
    shipping_address: Optional[str] = None
    notes: Optional[str] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class OrderItemResponse(CamelModel):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: float


class OrderResponse(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    status: OrderStatus
    total: float
    shipping_address: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _serialize(order: Order, items: List[OrderItem]) -> dict:
    data = OrderResponse.model_validate(order).to_json()
    data["items"] = [OrderItemResponse.model_validate(item).to_json() for item in items]
    return data


def _get_order(db: Session, user: User, order_id: str) -> Order:
    try:
        order_uuid = uuid.UUID(order_id)
    except ValueError:
        raise NotFoundError(ORDER_NOT_FOUND)
    query = db.query(Order).filter(Order.id == order_uuid)
    if not has_at_least(user.role, UserRole.ADMIN):
        query = query.filter(Order.user_id == user.id)
    order = query.first()
    if order is None:
        raise NotFoundError(ORDER_NOT_FOUND)
    return order


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Place an order from the given items, or from the cart when items are omitted."""
    items = None
    if payload.items is not None:
        items = [(line.product_id, line.quantity) for line in payload.items]
    order, order_items = order_service.place_order(
        db,
        current_user,
        items,
        shipping_address=payload.shipping_address,
        notes=payload.notes,
    )
    return success_response({"order": _serialize(order, order_items)}, ORDER_CREATED)


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    all_orders: bool = Query(False, alias="all"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Order)
    if not (all_orders and has_at_least(current_user.role, UserRole.ADMIN)):
        query = query.filter(Order.user_id == current_user.id)

    total = query.count()
    orders = query.order_by(Order.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {
            "orders": [_serialize(o, order_service.order_items(db, o)) for o in orders],
            "pagination": pagination(page, limit, total),
        }
    )


@router.get("/{order_id}")
def get_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = _get_order(db, current_user, order_id)
    return success_response({"order": _serialize(order, order_service.order_items(db, order))})


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = order_service.cancel_order(db, _get_order(db, current_user, order_id))
    return success_response({"order": _serialize(order, order_service.order_items(db, order))}, ORDER_CANCELLED)


@router.put("/{order_id}/status")
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    order = _get_order(db, current_user, order_id)
    if payload.status == OrderStatus.CANCELLED:
        order = order_service.cancel_order(db, order)
    else:
        order.status = payload.status.value
        db.add(order)
        db.commit()
        db.refresh(order)
    return success_response(
        {"order": _serialize(order, order_service.order_items(db, order))},
        ORDER_STATUS_UPDATED,
    )
