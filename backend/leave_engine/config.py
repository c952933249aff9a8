from datetime import datetime
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


class Settings(BaseSettings):
    """Engine settings, read from the environment (or a local .env file)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "Leave Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://leave_engine:leave_engine@db:5432/leave_engine"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # MM-DD dates that are off for every org unless explicitly overridden.
    fixed_holidays: list[str] = ["01-26", "08-15", "10-02", "12-31"]
    comp_off_sweep_interval_seconds: int = 86400

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: object) -> object:
        return value.upper() if isinstance(value, str) else value

    @field_validator("fixed_holidays")
    @classmethod
    def _validate_fixed_holidays(cls, value: list[str]) -> list[str]:
        for entry in value:
            try:
                # 2000 is a leap year, so 02-29 is accepted.
                datetime.strptime(f"2000-{entry}", "%Y-%m-%d")
            except ValueError:
                msg = f"fixed holiday {entry!r} is not a valid MM-DD date"
                raise ValueError(msg) from None
        return value


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
