from __future__ import annotations

import logging
import uuid
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import AuthError, ConflictError
from app.core.messages import AUTH_INVALID_CREDENTIALS, REG_EMAIL_EXISTS
from app.core.roles import UserRole
from app.core.security import get_password_hash, verify_password
from app.models.user import User


logger = logging.getLogger("app.services.users")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def serialize_user(user: User) -> dict[str, Any]:
    return {
        "id": str(user.id),
        "email": user.email,
        "firstName": user.first_name,
        "lastName": user.last_name,
        "phone": user.phone,
        "company": user.company,
        "role": user.role,
        "isActive": bool(user.is_active),
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "updatedAt": user.updated_at.isoformat() if user.updated_at else None,
    }


def get_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    role: UserRole = UserRole.CUSTOMER,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    company: Optional[str] = None,
    is_active: bool = True,
) -> User:
    """Create a user with a bcrypt-hashed password. Duplicate email raises ConflictError."""
    if get_by_email(db, email) is not None:
        raise ConflictError(REG_EMAIL_EXISTS)

    user = User(
        id=uuid.uuid4(),
        email=normalize_email(email),
        password_hash=get_password_hash(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        company=company,
        role=UserRole(role).value,
        is_active=is_active,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("User created: user_id=%s, role=%s", user.id, user.role)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    """Check credentials. Unknown email, wrong password and inactive user look the same."""
    user = get_by_email(db, email)
    if not user or not user.is_active or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for %s", normalize_email(email))
        raise AuthError(AUTH_INVALID_CREDENTIALS)
    return user
