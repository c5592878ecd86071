from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .config import settings


def get_database_url() -> str:
    """Get database URL, preferring an explicit DATABASE_URL."""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL

    base_url = (
        f"postgresql+psycopg2://{settings.POSTGRES_USER}:"
        f"{settings.POSTGRES_PASSWORD}@{settings.POSTGRES_HOST}:"
        f"{settings.POSTGRES_PORT}/{settings.POSTGRES_DB}"
    )

    # Managed Postgres in production/staging requires SSL
    if settings.ENVIRONMENT.lower() in ("production", "staging"):
        base_url += "?sslmode=require"

    return base_url


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Request handlers and the device channel share connections across threads
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


_database_url = get_database_url()
engine = create_engine(_database_url, **_engine_kwargs(_database_url))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create all tables. Production schemas are managed by Alembic."""
    from app.models import Base

    Base.metadata.create_all(bind=engine, checkfirst=True)
