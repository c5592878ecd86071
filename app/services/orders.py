"""Order placement and cancellation.

Stock is adjusted with plain arithmetic on the product row; there is no
reservation step, so concurrent checkouts can oversell the last units.
"""

from __future__ import annotations

import logging
import uuid
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.core.messages import (
    CART_EMPTY,
    ORDER_CANNOT_CANCEL,
    ORDER_INSUFFICIENT_STOCK,
    ORDER_PRODUCT_UNAVAILABLE,
)
from app.models.order import CANCELLABLE_STATUSES, CartItem, Order, OrderItem, OrderStatus
from app.models.product import Product
from app.models.user import User


logger = logging.getLogger("app.orders")


def _apply_stock(product: Product, delta: int) -> None:
    product.stock_count = product.stock_count + delta
    product.in_stock = product.stock_count > 0


def cart_lines(db: Session, user: User) -> List[Tuple[CartItem, Product]]:
    return (
        db.query(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .filter(CartItem.user_id == user.id)
        .order_by(CartItem.created_at.asc())
        .all()
    )


def place_order(
    db: Session,
    user: User,
    items: Optional[Iterable[Tuple[uuid.UUID, int]]] = None,
    shipping_address: Optional[str] = None,
    notes: Optional[str] = None,
) -> Tuple[Order, List[OrderItem]]:
    """Create an order from explicit items, or from the user's cart when none are given."""
    from_cart = items is None
    if from_cart:
        items = [(line.product_id, line.quantity) for line, _ in cart_lines(db, user)]

    # Merge duplicate lines so the stock check sees the full quantity
    requested: dict[uuid.UUID, int] = {}
    for product_id, quantity in items:
        requested[product_id] = requested.get(product_id, 0) + quantity
    if not requested:
        raise ValidationError(CART_EMPTY)

    order = Order(id=uuid.uuid4(), user_id=user.id, shipping_address=shipping_address, notes=notes)
    order_items: List[OrderItem] = []
    total = 0.0

    for product_id, quantity in requested.items():
        product = db.get(Product, product_id)
        if product is None or not product.is_active:
            raise ValidationError(ORDER_PRODUCT_UNAVAILABLE.format(product_id=product_id))
        if product.stock_count < quantity:
            raise ValidationError(ORDER_INSUFFICIENT_STOCK.format(name=product.name))

        _apply_stock(product, -quantity)
        total += float(product.price) * quantity
        order_items.append(
            OrderItem(order_id=order.id, product_id=product.id, quantity=quantity, unit_price=product.price)
        )

    order.total = round(total, 2)
    db.add(order)
    db.flush()
    db.add_all(order_items)
    if from_cart:
        db.query(CartItem).filter(CartItem.user_id == user.id).delete(synchronize_session=False)
    db.commit()
    db.refresh(order)
    logger.info("Order placed: order_id=%s, user_id=%s, total=%.2f", order.id, user.id, order.total)
    return order, order_items


def order_items(db: Session, order: Order) -> List[OrderItem]:
    return db.query(OrderItem).filter(OrderItem.order_id == order.id).all()


def cancel_order(db: Session, order: Order) -> Order:
    """Cancel a pending or confirmed order and put its units back in stock."""
    if order.status not in CANCELLABLE_STATUSES:
        raise ValidationError(ORDER_CANNOT_CANCEL)

    for item in order_items(db, order):
        product = db.get(Product, item.product_id)
        if product is not None:
            _apply_stock(product, item.quantity)

    order.status = OrderStatus.CANCELLED.value
    db.add(order)
    db.commit()
    db.refresh(order)
    logger.info("Order cancelled: order_id=%s", order.id)
    return order
