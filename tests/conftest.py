import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="robostore-tests-")

# Settings are read once at import time, so configure before importing the app
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/test.db"
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "10"
os.environ["REDIS_URL"] = "disabled"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.database import SessionLocal, engine  # noqa: E402
from app.core.roles import UserRole  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.models import Base, Product  # noqa: E402
from app.services.users import create_user  # noqa: E402
from main import app  # noqa: E402


DEFAULT_PASSWORD = "Passw0rd"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db):
    """Create a user directly and return (user, headers)."""

    def factory(email: str, role: UserRole = UserRole.CUSTOMER, password: str = DEFAULT_PASSWORD):
        user = create_user(db, email=email, password=password, role=role)
        return user, auth_headers(create_access_token(user.id, user.email))

    return factory


@pytest.fixture
def make_product(db):
    def factory(name: str = "Sentinel X1", price: float = 499.0, stock_count: int = 5, **fields):
        product = Product(
            name=name,
            description=fields.pop("description", f"{name} robot"),
            price=price,
            category=fields.pop("category", "SECURITY"),
            images=[],
            features=[],
            stock_count=stock_count,
            in_stock=stock_count > 0,
            **fields,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return factory


@pytest.fixture
def create_device(client):
    def factory(headers: dict, **body):
        payload = {"name": "Bot1", "type": "Security"}
        payload.update(body)
        response = client.post("/api/devices", json=payload, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]["device"]

    return factory
