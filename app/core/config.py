from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    PROJECT_NAME: str = "Robotics Store API"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    API_PREFIX: str = "/api"

    # Security
    SECRET_KEY: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_DAYS: int = 7
    JWT_ISSUER: str = "robostore-api"
    JWT_AUDIENCE: str = "robostore-client"
    BCRYPT_ROUNDS: int = Field(default=12, ge=10, le=16)

    # Database
    DATABASE_URL: str | None = None
    POSTGRES_HOST: str = "db"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "robostore"

    # CORS
    FRONTEND_URL: str = "http://localhost:5173"

    # Redis / rate limiting
    REDIS_URL: str = "redis://redis:6379/0"
    RATE_LIMIT_WINDOW_SECONDS: int = 15 * 60
    AUTH_RATE_LIMIT_MAX: int = 20
    PRODUCT_RATE_LIMIT_MAX: int = 100

    # Device fleet
    LOW_BATTERY_THRESHOLD: int = 20


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
