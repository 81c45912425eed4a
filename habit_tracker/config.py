"""Application settings loaded from the environment."""
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ----- Database -----
    database_url: str = Field(default="sqlite:///./habit_tracker.db", description="SQLAlchemy database URL")
    database_echo: bool = Field(default=False, description="Echo SQL statements")

    # ----- Auth -----
    secret_key: str = Field(default="supersecretkey", description="JWT signing key")
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)  # 7 days

    # ----- Application -----
    app_name: str = Field(default="habit-tracker")
    app_env: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=True, description="Render logs as JSON instead of console lines")
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins (comma-separated)",
    )

    # ----- Progression -----
    xp_per_checkin: int = Field(default=100, gt=0, description="XP awarded for one completed day")
    level_xp_step: int = Field(default=500, gt=0, description="threshold(level) = level_xp_step * level")
    streak_max_lookback_days: int = Field(default=3650, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="HABIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v.upper()

    def get_allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache()
def get_settings() -> Settings:
    """Settings for the running process, loaded once."""
    return Settings()
