import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user, product_rate_limit, require_admin
from app.core.database import get_db
from app.core.exceptions import NotFoundError, ValidationError
from app.core.messages import (
    PRODUCT_CREATED,
    PRODUCT_DELETED,
    PRODUCT_NOT_FOUND,
    PRODUCT_UPDATED,
    REVIEW_ADDED,
    REVIEW_ALREADY_EXISTS,
)
from app.core.schemas import CamelModel, pagination, success_response
from app.models.product import Product, ProductCategory, Review
from app.models.user import User


logger = logging.getLogger("app.products")

router = APIRouter(
    prefix="/products",
    tags=["products"],
    dependencies=[Depends(product_rate_limit)],
)

SORT_COLUMNS = {
    "name": Product.name,
    "price": Product.price,
    "rating": Product.rating,
    "createdAt": Product.created_at,
}


class ProductCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: ProductCategory
    images: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    specifications: Optional[Dict[str, Any]] = None
    stock_count: int = Field(0, ge=0)
    badge: Optional[str] = Field(None, max_length=50)


class ProductUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[ProductCategory] = None
    images: Optional[List[str]] = None
    features: Optional[List[str]] = None
    specifications: Optional[Dict[str, Any]] = None
    stock_count: Optional[int] = Field(None, ge=0)
    badge: Optional[str] = Field(None, max_length=50)
    is_active: Optional[bool] = None


class ReviewCreate(CamelModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = Field(None, max_length=255)
    comment: Optional[str] = None


class ProductResponse(CamelModel):
    id: uuid.UUID
    name: str
    description: str
    price: float
    original_price: Optional[float] = None
    category: str
    images: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    specifications: Optional[Dict[str, Any]] = None
    stock_count: int
    in_stock: bool
    badge: Optional[str] = None
    rating: float
    review_count: int
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewResponse(CamelModel):
    id: uuid.UUID
    user_id: uuid.UUID
    product_id: uuid.UUID
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


def _get_product(db: Session, product_id: str) -> Product:
    try:
        product_uuid = uuid.UUID(product_id)
    except ValueError:
        raise NotFoundError(PRODUCT_NOT_FOUND)
    product = db.get(Product, product_uuid)
    if product is None:
        raise NotFoundError(PRODUCT_NOT_FOUND)
    return product


def _serialize_review(review: Review, author: Optional[User] = None) -> dict:
    data = ReviewResponse.model_validate(review).to_json()
    if author is not None:
        data["user"] = {"firstName": author.first_name, "lastName": author.last_name}
    return data


def recalculate_rating(db: Session, product: Product) -> None:
    """Recompute the average rating by scanning every review of the product."""
    ratings = [r for (r,) in db.query(Review.rating).filter(Review.product_id == product.id).all()]
    product.review_count = len(ratings)
    product.rating = round(sum(ratings) / len(ratings), 1) if ratings else 0.0


@router.get("")
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[ProductCategory] = None,
    search: Optional[str] = None,
    min_price: Optional[float] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[float] = Query(None, alias="maxPrice", ge=0),
    in_stock: Optional[bool] = Query(None, alias="inStock"),
    sort_by: Literal["name", "price", "rating", "createdAt"] = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    db: Session = Depends(get_db),
):
    """List active products with filtering, sorting and pagination."""
    query = db.query(Product).filter(Product.is_active.is_(True))

    if category is not None:
        query = query.filter(Product.category == category.value)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if in_stock is not None:
        query = query.filter(Product.in_stock.is_(in_stock))

    column = SORT_COLUMNS[sort_by]
    total = query.count()
    products = (
        query.order_by(column.asc() if sort_order == "asc" else column.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return success_response(
        {
            "products": [ProductResponse.model_validate(p).to_json() for p in products],
            "pagination": pagination(page, limit, total),
        }
    )


@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    product = _get_product(db, product_id)
    rows = (
        db.query(Review, User)
        .join(User, Review.user_id == User.id)
        .filter(Review.product_id == product.id)
        .order_by(Review.created_at.desc())
        .all()
    )
    data = ProductResponse.model_validate(product).to_json()
    data["reviews"] = [_serialize_review(review, author) for review, author in rows]
    return success_response({"product": data})


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = Product(
        name=payload.name.strip(),
        description=payload.description.strip(),
        price=payload.price,
        original_price=payload.original_price,
        category=payload.category.value,
        images=payload.images,
        features=payload.features,
        specifications=payload.specifications,
        stock_count=payload.stock_count,
        in_stock=payload.stock_count > 0,
        badge=payload.badge,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product created: product_id=%s, by=%s", product.id, current_user.id)
    return success_response({"product": ProductResponse.model_validate(product).to_json()}, PRODUCT_CREATED)


@router.put("/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("category") is not None:
        changes["category"] = ProductCategory(changes["category"]).value

    for field, value in changes.items():
        if value is None and field in ("name", "description", "price", "category", "stock_count", "is_active"):
            continue
        setattr(product, field, value)
    if changes.get("stock_count") is not None:
        product.in_stock = product.stock_count > 0

    db.add(product)
    db.commit()
    db.refresh(product)
    return success_response({"product": ProductResponse.model_validate(product).to_json()}, PRODUCT_UPDATED)


@router.delete("/{product_id}")
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    product = _get_product(db, product_id)
    db.query(Review).filter(Review.product_id == product.id).delete(synchronize_session=False)
    db.delete(product)
    db.commit()
    logger.info("Product deleted: product_id=%s, by=%s", product_id, current_user.id)
    return success_response(message=PRODUCT_DELETED)


@router.post("/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
def add_review(
    product_id: str,
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = _get_product(db, product_id)

    existing = (
        db.query(Review)
        .filter(Review.product_id == product.id, Review.user_id == current_user.id)
        .first()
    )
    if existing:
        raise ValidationError(REVIEW_ALREADY_EXISTS)

    review = Review(
        user_id=current_user.id,
        product_id=product.id,
        rating=payload.rating,
        title=payload.title,
        comment=payload.comment,
    )
    db.add(review)
    db.flush()
    recalculate_rating(db, product)
    db.add(product)
    db.commit()
    db.refresh(review)
    return success_response({"review": _serialize_review(review, current_user)}, REVIEW_ADDED)


@router.get("/{product_id}/reviews")
def list_reviews(
    product_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    product = _get_product(db, product_id)
    query = db.query(Review, User).join(User, Review.user_id == User.id).filter(Review.product_id == product.id)
    total = db.query(func.count(Review.id)).filter(Review.product_id == product.id).scalar() or 0
    rows = query.order_by(Review.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return success_response(
        {
            "reviews": [_serialize_review(review, author) for review, author in rows],
            "pagination": pagination(page, limit, total),
        }
    )
