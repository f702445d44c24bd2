"""
Application settings using Pydantic.

Provides environment-based configuration loading with PROMBOARD_ prefix.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from promboard.prometheus.time_range import parse_duration


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROMBOARD_",
        extra="ignore",
    )

    # Prometheus
    prometheus_url: str = "http://localhost:9090"
    prometheus_username: str | None = None
    prometheus_password: str | None = None
    prometheus_timeout: float = Field(default=10.0, gt=0)

    # HTTP client settings
    http_max_retries: int = Field(default=0, ge=0)

    # Dashboards
    dashboard_path: str = "./dashboards/example.json"
    dashboard_directory: str = "./dashboards"

    # Refresh cycle
    refresh_interval: float = Field(default=5.0, gt=0)
    time_range: str = "5m"
    history_capacity: int = Field(default=60, gt=0)

    # Debug
    debug: bool = False

    @field_validator("time_range")
    @classmethod
    def validate_time_range(cls, v: str) -> str:
        parse_duration(v)
        return v

