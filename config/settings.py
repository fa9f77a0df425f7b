# config/settings.py

from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, validator
import os
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Campus Checkpoint"
    DEBUG: bool = False
    ENVIRONMENT: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # CORS
    CORS_ORIGINS: str = ""

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        if not self.CORS_ORIGINS:
            return ["*"] if self.DEBUG else []
        return [s.strip() for s in self.CORS_ORIGINS.split(",") if s.strip()]

    # Database
    DATABASE_URL: str
    DB_POOL_SIZE: int = Field(default=20, ge=5, le=100)
    DB_MAX_OVERFLOW: int = Field(default=30, ge=5, le=100)
    DB_POOL_RECYCLE: int = Field(default=3600, ge=300)
    DB_POOL_TIMEOUT: int = Field(default=10, ge=1, le=120)            # seconds waiting for a pooled connection
    DB_CONNECT_TIMEOUT: int = Field(default=5, ge=1, le=60)           # seconds
    DB_STATEMENT_TIMEOUT_MS: int = Field(default=5000, ge=100, le=120000)
    AUTO_CREATE_TABLES: bool = True

    # Redis (distributed per-key locks)
    REDIS_URL: Optional[str] = None
    LOCK_BACKEND: str = Field(default="local", pattern="^(local|redis)$")
    LOCK_TIMEOUT_SECONDS: float = Field(default=10.0, gt=0)           # lease on a held lock
    LOCK_WAIT_SECONDS: float = Field(default=5.0, gt=0)               # max wait to acquire

    # Clock
    TIMEZONE: str = "America/Lima"

    # Attendance decisions
    CORRECTION_WINDOW_MINUTES: int = Field(default=5, ge=1, le=60)
    REVERSAL_FALLBACK: str = Field(default="event_timestamp", pattern="^(event_timestamp|deny)$")

    # Presence
    LONG_PRESENCE_HOURS: int = Field(default=8, ge=1, le=72)

    # Guard sessions
    SESSION_STALE_AFTER_SECONDS: int = Field(default=300, ge=30)

    # Presence reconciliation worker
    RECONCILE_WORKER_ENABLED: bool = False
    RECONCILE_INTERVAL_SECONDS: int = Field(default=60, ge=5)
    RECONCILE_BATCH_SIZE: int = Field(default=100, ge=1, le=1000)

    # Monitoring
    LOG_LEVEL: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")

    # Server
    PORT: Optional[int] = Field(default=8000, ge=1, le=65535)

    # Application modes
    MAINTENANCE_MODE: bool = Field(default=False)

    @validator('DATABASE_URL')
    def validate_database_url(cls, v):
        """Validate database URL format"""
        if not v.startswith(('postgresql://', 'postgresql+psycopg2://', 'sqlite://')):
            raise ValueError('Unsupported database URL format')
        return v

    @validator('REDIS_URL')
    def validate_redis_url(cls, v):
        """Validate Redis URL format"""
        if v and not v.startswith(('redis://', 'rediss://')):
            raise ValueError('Invalid Redis URL format')
        return v

    @validator('LOCK_BACKEND')
    def validate_lock_backend(cls, v, values):
        if v == "redis" and not values.get("REDIS_URL"):
            raise ValueError('LOCK_BACKEND=redis requires REDIS_URL')
        return v

    @validator('TIMEZONE')
    def validate_timezone(cls, v):
        try:
            ZoneInfo(v)
        except ZoneInfoNotFoundError:
            raise ValueError(f'Unknown timezone {v!r}')
        return v

    @validator('CORS_ORIGINS')
    def validate_cors_origins(cls, v):
        """Validate CORS origins in production"""
        environment = os.getenv('ENVIRONMENT', 'development')
        if environment == 'production' and ('*' in v or not v):
            raise ValueError('Wildcard CORS origins not allowed in production')
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.TIMEZONE)

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
