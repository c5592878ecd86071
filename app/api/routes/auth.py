import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from app.api.dependencies import auth_rate_limit, get_current_user
from app.core.database import get_db
from app.core.exceptions import ValidationError
from app.core.messages import (
    AUTH_CURRENT_PASSWORD_INCORRECT,
    AUTH_LOGIN_SUCCESS,
    AUTH_PASSWORD_CHANGED,
    AUTH_PROFILE_UPDATED,
    REG_SUCCESS,
)
from app.core.schemas import CamelModel, success_response
from app.core.security import create_access_token, get_password_hash, verify_password
from app.models.user import User
from app.services import users as user_service


logger = logging.getLogger("app.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)

    @field_validator("first_name", "last_name", "phone", "company")
    @classmethod
    def strip_optional(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip() or None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class ProfileUpdate(CamelModel):
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone: str | None = Field(None, max_length=50)
    company: str | None = Field(None, max_length=255)


class ChangePasswordRequest(CamelModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6, max_length=128)


def _auth_payload(user: User) -> dict:
    return {
        "user": user_service.serialize_user(user),
        "token": create_access_token(user.id, user.email),
    }


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(auth_rate_limit)],
)
def register(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Register a new customer account and return a bearer token."""
    user = user_service.create_user(
        db,
        email=payload.email,
        password=payload.password,
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        company=payload.company,
    )
    return success_response(_auth_payload(user), REG_SUCCESS)


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
def login(payload: LoginRequest, db: Session = Depends(get_db)):
    user = user_service.authenticate(db, payload.email, payload.password)
    logger.info("User logged in: user_id=%s", user.id)
    return success_response(_auth_payload(user), AUTH_LOGIN_SUCCESS)


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return success_response({"user": user_service.serialize_user(current_user)})


@router.put("/profile")
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value.strip() if isinstance(value, str) else value)

    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return success_response({"user": user_service.serialize_user(current_user)}, AUTH_PROFILE_UPDATED)


@router.put("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.password_hash):
        raise ValidationError(AUTH_CURRENT_PASSWORD_INCORRECT)

    current_user.password_hash = get_password_hash(payload.new_password)
    db.add(current_user)
    db.commit()
    logger.info("Password changed: user_id=%s", current_user.id)
    return success_response(message=AUTH_PASSWORD_CHANGED)
