from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from jose import ExpiredSignatureError, JWTError, jwt

from .config import settings
from .exceptions import AuthError
from .messages import AUTH_TOKEN_EXPIRED, AUTH_TOKEN_INVALID

# bcrypt only looks at the first 72 bytes of the password
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("utf-8"))
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False


def get_password_hash(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(password), salt).decode("utf-8")


def create_access_token(
    user_id: str | Any,
    email: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    sub = str(user_id)
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(days=settings.JWT_EXPIRES_DAYS))
    payload: dict[str, Any] = {
        "sub": sub,
        "userId": sub,
        "email": email,
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict[str, Any]:
    """Verify signature, expiry, issuer and audience of a bearer token.

    Raises AuthError on any failure. Expiry is checked exactly, without leeway.
    """
    if not token:
        raise AuthError(AUTH_TOKEN_INVALID)
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"leeway": 0},
        )
    except ExpiredSignatureError as exc:
        raise AuthError(AUTH_TOKEN_EXPIRED) from exc
    except JWTError as exc:
        raise AuthError(AUTH_TOKEN_INVALID) from exc

    if not payload.get("sub"):
        raise AuthError(AUTH_TOKEN_INVALID)
    return payload
