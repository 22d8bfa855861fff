"""Application configuration."""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./creditbook.db"

    # Application
    APP_ENV: str = "development"
    API_V1_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"

    # Frontend
    FRONTEND_URL: str = "http://localhost:3000"

    # Alert scheduler
    SCHEDULER_ENABLED: bool = True
    ALERT_TICK_MINUTES: int = 5
    ALERT_TIME_TOLERANCE_MINUTES: int = 5
    ALERT_HORIZON_DAYS: Optional[int] = 7
    DISPATCH_TIMEOUT_SECONDS: float = 10.0

    # UI push endpoint for toasts; console logging when empty
    NOTIFICATION_WEBHOOK_URL: str = ""

    # CORS
    @property
    def ALLOWED_ORIGINS(self) -> List[str]:
        if self.APP_ENV == "development":
            return ["*"]  # Allow all origins in development
        return [self.FRONTEND_URL, "http://localhost:3000"]

    @model_validator(mode="after")
    def check_tick_within_tolerance(self) -> "Settings":
        # A tick longer than the time window can step over a rule's window entirely
        if self.ALERT_TICK_MINUTES <= 0:
            raise ValueError("ALERT_TICK_MINUTES must be positive")
        if self.ALERT_TICK_MINUTES > self.ALERT_TIME_TOLERANCE_MINUTES:
            raise ValueError(
                f"ALERT_TICK_MINUTES ({self.ALERT_TICK_MINUTES}) must not exceed "
                f"ALERT_TIME_TOLERANCE_MINUTES ({self.ALERT_TIME_TOLERANCE_MINUTES})"
            )
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True
    )


settings = Settings()
