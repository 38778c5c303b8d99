from pydantic_settings import BaseSettings, NoDecode
from pydantic import Field, validator
from typing import Annotated, List
import json
import secrets


class Settings(BaseSettings):
    # Application settings
    APP_NAME: str = "Exam Offline Sync Service"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api/v1"

    # CORS settings
    # Comma-separated or a JSON list in the environment
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Database settings
    DATABASE_URL: str = "sqlite+aiosqlite:///./exam_sync.db"
    DATABASE_ECHO: bool = False

    # Security settings
    AUTH_ENABLED: bool = True
    JWT_SECRET_KEY: str = Field(default_factory=lambda: secrets.token_urlsafe(32))
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # Offline sync settings
    SYNC_STATUS_WINDOW_DAYS: int = 30
    SYNC_RECENT_PACKAGES_LIMIT: int = 10
    SYNC_SERIALIZE_PACKAGE_BUILDS: bool = True
    SYNC_EXPORT_DB_NAME: str = "offline_exam"

    @validator("ALLOWED_ORIGINS", pre=True)
    def parse_origins(cls, v):
        if isinstance(v, str):
            if v.strip().startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @validator("DATABASE_URL")
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL is required")
        return v

    @validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"):
            raise ValueError(f"Unsupported LOG_LEVEL: {v}")
        return level

    @validator("SYNC_RECENT_PACKAGES_LIMIT", "SYNC_STATUS_WINDOW_DAYS")
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be a positive integer")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
