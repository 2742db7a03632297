"""
Configuration management using pydantic-settings.
All settings loaded from environment variables (12-factor app).
"""

from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    storage_backend: str = Field(default="duckdb", description="Storage backend (duckdb|memory)")
    db_path: str = Field(default="./data/scorecard.duckdb", description="DuckDB file path")
    db_threads: int = Field(default=4, description="DuckDB thread count")

    # API
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8000, description="API port")
    api_reload: bool = Field(default=True, description="Enable hot reload")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="CORS allowed origins (comma-separated)",
    )

    # Logging
    log_level: str = Field(default="info", description="Log level")
    log_format: str = Field(default="json", description="Log format (json|console)")

    # Engine Configuration
    default_timezone: str = Field(
        default="UTC", description="Timezone for calendar window boundaries"
    )
    rollup_max_depth: int = Field(
        default=16, ge=1, le=64, description="Max rollup traversal depth"
    )
    goal_band: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Fraction of |goal| treated as at_risk when no thresholds exist",
    )
    request_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Deadline for a single scorecard request"
    )

    # Trend epsilons, relative change treated as flat, per metric unit
    trend_epsilon_currency: float = Field(default=0.005, ge=0.0, description="Currency epsilon")
    trend_epsilon_percentage: float = Field(default=0.02, ge=0.0, description="Percentage epsilon")
    trend_epsilon_count: float = Field(default=0.01, ge=0.0, description="Count epsilon")
    trend_epsilon_custom: float = Field(default=0.01, ge=0.0, description="Custom unit epsilon")

    # Development
    dev_mode: bool = Field(default=True, description="Development mode")
    testing: bool = Field(default=False, description="Testing mode")

    @field_validator("cors_origins")
    @classmethod
    def parse_cors_origins(cls, v: str) -> List[str]:
        """Parse comma-separated CORS origins."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("storage_backend")
    @classmethod
    def validate_storage_backend(cls, v: str) -> str:
        """Only the two shipped backends are accepted."""
        if v.lower() not in {"duckdb", "memory"}:
            raise ValueError("storage_backend must be 'duckdb' or 'memory'")
        return v.lower()

    def trend_epsilon_for(self, unit: str) -> float:
        """Relative change below which a trend is reported as flat."""
        return {
            "currency": self.trend_epsilon_currency,
            "percentage": self.trend_epsilon_percentage,
            "count": self.trend_epsilon_count,
        }.get(getattr(unit, "value", unit), self.trend_epsilon_custom)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.
    Uses lru_cache to ensure singleton behavior.
    """
    return Settings()
