import uuid
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.core.config import settings
from app.core.exceptions import AuthError
from app.core.roles import UserRole, has_at_least
from app.core.security import create_access_token, decode_token, get_password_hash, verify_password


def test_password_hash_roundtrip():
    hashed = get_password_hash("Passw0rd")
    assert hashed != "Passw0rd"
    assert verify_password("Passw0rd", hashed)
    assert not verify_password("passw0rd", hashed)


def test_verify_password_rejects_non_bcrypt_hash():
    assert verify_password("Passw0rd", "plain-text") is False


def test_token_claims():
    user_id = uuid.uuid4()
    claims = decode_token(create_access_token(user_id, "a@example.com"))
    assert claims["sub"] == str(user_id)
    assert claims["userId"] == str(user_id)
    assert claims["iss"] == settings.JWT_ISSUER
    assert claims["aud"] == settings.JWT_AUDIENCE
    assert claims["exp"] - claims["iat"] == settings.JWT_EXPIRES_DAYS * 24 * 3600


def test_expired_token_is_rejected():
    token = create_access_token(uuid.uuid4(), "a@example.com", expires_delta=timedelta(seconds=-10))
    with pytest.raises(AuthError) as exc:
        decode_token(token)
    assert exc.value.message == "Token expired"
    assert exc.value.status_code == 401


def _forge(**overrides):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(uuid.uuid4()),
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(hours=1)).timestamp()),
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
    }
    payload.update(overrides)
    secret = payload.pop("secret", settings.SECRET_KEY)
    return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)


@pytest.mark.parametrize(
    "overrides",
    [
        {"aud": "someone-else"},
        {"iss": "another-issuer"},
        {"secret": "wrong-secret"},
        {"sub": ""},
    ],
)
def test_tampered_tokens_are_invalid(overrides):
    with pytest.raises(AuthError) as exc:
        decode_token(_forge(**overrides))
    assert exc.value.message == "Invalid token"


def test_role_hierarchy():
    assert has_at_least(UserRole.ADMIN, UserRole.TECHNICIAN)
    assert has_at_least("ADMIN", UserRole.CUSTOMER)
    assert has_at_least(UserRole.TECHNICIAN, UserRole.TECHNICIAN)
    assert not has_at_least(UserRole.CUSTOMER, UserRole.TECHNICIAN)
    assert not has_at_least(UserRole.TECHNICIAN, UserRole.ADMIN)
    assert not has_at_least("SUPERUSER", UserRole.CUSTOMER)
