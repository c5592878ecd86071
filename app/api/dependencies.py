from __future__ import annotations

import logging
import uuid
from typing import Annotated, Callable

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.core.exceptions import AppError, AuthError, ForbiddenError
from app.core.messages import (
    AUTH_INSUFFICIENT_PERMISSIONS,
    AUTH_TOKEN_INVALID,
    AUTH_TOKEN_MISSING,
    AUTH_USER_NOT_FOUND_OR_INACTIVE,
    ERROR_RATE_LIMITED,
)
from app.core.redis import count_in_window
from app.core.roles import UserRole, has_at_least
from app.core.security import decode_token
from app.models.user import User


logger = logging.getLogger("app.dependencies")

oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_PREFIX}/auth/login",
    auto_error=False,
)


class RateLimitError(AppError):
    status_code = 429


def authenticate_token(db: Session, token: str | None) -> User:
    """Resolve a bearer token to an active user or raise AuthError."""
    if not token:
        raise AuthError(AUTH_TOKEN_MISSING)

    payload = decode_token(token)
    try:
        user_uuid = uuid.UUID(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise AuthError(AUTH_TOKEN_INVALID)

    user: User | None = db.query(User).filter(User.id == user_uuid, User.is_active.is_(True)).first()
    if not user:
        raise AuthError(AUTH_USER_NOT_FOUND_OR_INACTIVE)
    return user


def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Session = Depends(get_db),
) -> User:
    return authenticate_token(db, token)


def require_role(required: UserRole) -> Callable[[User], User]:
    """Dependency allowing ``required`` and every role above it."""

    def dependency(current_user: Annotated[User, Depends(get_current_user)]) -> User:
        if not has_at_least(current_user.role, required):
            raise ForbiddenError(AUTH_INSUFFICIENT_PERMISSIONS)
        return current_user

    return dependency


require_admin = require_role(UserRole.ADMIN)


def rate_limit(scope: str, max_requests: int) -> Callable[[Request], None]:
    """Fixed-window limit per client IP. No-op when Redis is unavailable."""

    def dependency(request: Request) -> None:
        client = request.client.host if request.client else "unknown"
        hits = count_in_window(f"ratelimit:{scope}:{client}", settings.RATE_LIMIT_WINDOW_SECONDS)
        if hits is not None and hits > max_requests:
            logger.warning("Rate limit exceeded: scope=%s, client=%s", scope, client)
            raise RateLimitError(ERROR_RATE_LIMITED)

    return dependency


auth_rate_limit = rate_limit("auth", settings.AUTH_RATE_LIMIT_MAX)
product_rate_limit = rate_limit("products", settings.PRODUCT_RATE_LIMIT_MAX)
