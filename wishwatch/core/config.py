"""Core configuration management using Pydantic settings."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator, field_validator
from typing import Optional


# Valid log levels
VALID_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Supported scheduler lock backends
VALID_LOCK_BACKENDS = ['database', 'redis']


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/wishwatch.db"

    # Redis (only used when lock_backend == "redis")
    redis_url: str = "redis://localhost:6379/0"

    # Scheduler lock
    lock_backend: str = "database"
    instance_id: Optional[str] = None  # Generated per process when unset
    lock_stale_after: int = 60  # seconds without heartbeat before takeover
    heartbeat_interval: int = 20
    lock_retry_interval: int = 30

    # Telegram (notifications are skipped when unset)
    telegram_bot_token: Optional[str] = None

    # Polling cadence (seconds)
    tick_interval: int = 5
    normal_check_interval: int = 60

    # Active hours window: polling is enqueued when hour >= start or hour < end
    active_hours_start: int = 4
    active_hours_end: int = 1
    active_hours_timezone: str = "UTC"

    # Catalog source
    fetta_base_url: str = "https://fetta.app"
    http_timeout: float = 20.0
    catalog_max_pages: int = 10
    catalog_page_delay_min: float = 4.0
    catalog_page_delay_max: float = 7.0

    # Monitoring API
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid Python logging level."""
        upper_v = v.upper()
        if upper_v not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}")
        return upper_v

    @field_validator('lock_backend')
    @classmethod
    def validate_lock_backend(cls, v: str) -> str:
        """Validate the scheduler lock backend name."""
        lower_v = v.lower()
        if lower_v not in VALID_LOCK_BACKENDS:
            raise ValueError(f"lock_backend must be one of {VALID_LOCK_BACKENDS}")
        return lower_v

    @field_validator('active_hours_start', 'active_hours_end')
    @classmethod
    def validate_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError(f"active hours must be between 0 and 23, got {v}")
        return v

    @model_validator(mode='after')
    def validate_config(self) -> 'Settings':
        """Validate configuration after all fields are set."""
        # Renewal must leave room for at least one missed heartbeat
        if self.heartbeat_interval * 2 > self.lock_stale_after:
            raise ValueError(
                "lock_stale_after must be at least twice heartbeat_interval"
            )
        if self.catalog_page_delay_min > self.catalog_page_delay_max:
            raise ValueError("catalog_page_delay_min must not exceed catalog_page_delay_max")
        if self.normal_check_interval <= 0:
            raise ValueError("normal_check_interval must be positive")
        return self


# Global settings instance
settings = Settings()
