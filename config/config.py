"""
Configuration for the London Zoo platform API
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Service info
    SERVICE_NAME: str = "london-zoo-api"
    SERVICE_PORT: int = 5000
    ENVIRONMENT: str = "development"

    # PostgreSQL Database
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "london_zoo"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    DATABASE_URL_OVERRIDE: Optional[str] = None

    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    # ==================== HTTP / CORS ====================
    FRONTEND_URL: str = "http://localhost:3000"

    # ==================== SESSIONS ====================
    SESSION_COOKIE_NAME: str = "zoo_session"
    SESSION_MAX_AGE_SECONDS: int = 24 * 60 * 60

    # bcrypt work factor
    BCRYPT_ROUNDS: int = 10

    # ==================== QUEUE / NAVIGATION ====================
    MINUTES_PER_PERSON: int = 5
    WALKING_SPEED_MPS: float = 1.4

    # ==================== SEED DATA ====================
    SEED_ON_STARTUP: bool = True
    SEED_STAFF_EMAIL: Optional[str] = None
    SEED_STAFF_PASSWORD: Optional[str] = None

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore"
    )


settings = Settings()
