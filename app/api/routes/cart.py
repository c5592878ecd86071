import uuid

from fastapi import APIRouter, Depends, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user
from app.core.database import get_db
from app.core.exceptions import NotFoundError, ValidationError
from app.core.messages import (
    CART_CLEARED,
    CART_ITEM_ADDED,
    CART_ITEM_NOT_FOUND,
    CART_ITEM_REMOVED,
    CART_ITEM_UPDATED,
    PRODUCT_NOT_FOUND,
)
from app.core.schemas import CamelModel, success_response
from app.models.order import CartItem
from app.models.product import Product
from app.models.user import User
from app.services.orders import cart_lines


router = APIRouter(prefix="/cart", tags=["cart"])


class CartItemCreate(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(1, ge=1, le=100)


class CartItemUpdate(CamelModel):
    quantity: int = Field(..., ge=1, le=100)


def _cart_payload(db: Session, user: User) -> dict:
    items = []
    total = 0.0
    for line, product in cart_lines(db, user):
        subtotal = float(product.price) * line.quantity
        total += subtotal
        items.append(
            {
                "id": str(line.id),
                "productId": str(product.id),
                "name": product.name,
                "price": float(product.price),
                "quantity": line.quantity,
                "subtotal": round(subtotal, 2),
                "inStock": product.in_stock,
            }
        )
    return {"items": items, "total": round(total, 2)}


def _get_line(db: Session, user: User, item_id: str) -> CartItem:
    try:
        item_uuid = uuid.UUID(item_id)
    except ValueError:
        raise NotFoundError(CART_ITEM_NOT_FOUND)
    line = db.query(CartItem).filter(CartItem.id == item_uuid, CartItem.user_id == user.id).first()
    if line is None:
        raise NotFoundError(CART_ITEM_NOT_FOUND)
    return line


@router.get("")
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return success_response(_cart_payload(db, current_user))


@router.post("/items", status_code=status.HTTP_201_CREATED)
def add_item(
    payload: CartItemCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = db.get(Product, payload.product_id)
    if product is None or not product.is_active:
        raise ValidationError(PRODUCT_NOT_FOUND)

    line = (
        db.query(CartItem)
        .filter(CartItem.user_id == current_user.id, CartItem.product_id == product.id)
        .first()
    )
    if line is None:
        line = CartItem(user_id=current_user.id, product_id=product.id, quantity=payload.quantity)
    else:
        line.quantity += payload.quantity
    db.add(line)
    db.commit()
    return success_response(_cart_payload(db, current_user), CART_ITEM_ADDED)


@router.put("/items/{item_id}")
def update_item(
    item_id: str,
    payload: CartItemUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    line = _get_line(db, current_user, item_id)
    line.quantity = payload.quantity
    db.add(line)
    db.commit()
    return success_response(_cart_payload(db, current_user), CART_ITEM_UPDATED)


@router.delete("/items/{item_id}")
def remove_item(
    item_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    line = _get_line(db, current_user, item_id)
    db.delete(line)
    db.commit()
    return success_response(_cart_payload(db, current_user), CART_ITEM_REMOVED)


@router.delete("")
def clear_cart(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    db.query(CartItem).filter(CartItem.user_id == current_user.id).delete(synchronize_session=False)
    db.commit()
    return success_response(_cart_payload(db, current_user), CART_CLEARED)
