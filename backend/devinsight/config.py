"""
Configuration management for DevInsight.
All settings loaded from environment variables / .env file.

Scoring thresholds live in a nested ScoringPolicy so they can be overridden
with ``SCORING__MIN_COMMENT_RATIO=0.1`` style variables.
"""

from __future__ import annotations

from typing import Any
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RiskThreshold(BaseModel):
    """One row of the risk table: the minimum values that trigger ``level``."""

    level: str
    min_complexity: int | None = None
    min_length: int | None = None


class ScoringPolicy(BaseModel):
    """Numeric policy consumed by the analysis engine."""

    # Most severe first; the first matching row wins.
    risk_thresholds: list[RiskThreshold] = Field(
        default_factory=lambda: [
            RiskThreshold(level="CRITICAL", min_complexity=20, min_length=150),
            RiskThreshold(level="HIGH", min_complexity=12, min_length=80),
            RiskThreshold(level="MEDIUM", min_complexity=7, min_length=40),
            RiskThreshold(level="WARNING", min_complexity=4),
        ],
    )

    # Penalty subtracted from a file's score per issue
    severity_weights: dict[str, int] = Field(
        default_factory=lambda: {
            "CRITICAL": 30,
            "HIGH": 15,
            "MEDIUM": 8,
            "WARNING": 3,
            "LOW": 1,
        },
    )

    # Issue detection
    min_comment_ratio: float = Field(default=0.05, ge=0.0, le=1.0)
    max_file_lines: int = Field(default=500, ge=1)
    max_nesting_depth: int = Field(default=5, ge=1)
    max_magic_numbers: int = Field(default=5, ge=0)

    # Ranking
    top_issues_limit: int = Field(default=10, ge=0)
    worst_files_limit: int = Field(default=5, ge=0)
    max_recommendations: int = Field(default=8, ge=0)

    # Recommendation rules
    critical_score: int = Field(default=50, ge=0, le=100)
    acceptable_score: int = Field(default=60, ge=0, le=100)
    high_risk_function_limit: int = Field(default=5, ge=0)
    issues_per_function_limit: float = Field(default=0.5, ge=0.0)
    min_test_file_ratio: float = Field(default=0.1, ge=0.0, le=1.0)

    # Input ceilings
    max_files: int = Field(default=50, ge=1)
    max_file_chars: int = Field(default=100_000, ge=1)
    max_merged_chars: int = Field(default=24_000, ge=1)

    @field_validator("risk_thresholds")
    @classmethod
    def validate_levels(cls, v: list[RiskThreshold]) -> list[RiskThreshold]:
        allowed = {"CRITICAL", "HIGH", "MEDIUM", "WARNING"}
        for row in v:
            if row.level not in allowed:
                raise ValueError(f"Unknown risk level in threshold table: {row.level}")
        return v


class Settings(BaseSettings):
    """Application settings – loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "DevInsight"
    environment: str = Field(default="development")
    debug: bool = Field(default=False)

    # API server
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    api_workers: int = Field(default=4)
    api_reload: bool = Field(default=True)

    # Database
    database_url: str = Field(default="sqlite:///./devinsight.db")

    # CORS – stored as comma-separated string in env; parsed to list
    cors_origins: list[str] = Field(
        default=["http://localhost:5173", "http://localhost:3000"],
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> list[str]:
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            return [o.strip() for o in v.split(",") if o.strip()]
        return []

    # Frontend
    frontend_url: str = Field(default="http://localhost:5173")

    # LLM
    anthropic_api_key: str = Field(default="")
    llm_model: str = Field(default="claude-sonnet-4-20250514")
    llm_max_tokens: int = Field(default=2000)
    llm_temperature: float = Field(default=0.3)
    llm_rate_limit_requests: int = Field(default=100)
    llm_rate_limit_period: int = Field(default=60)
    llm_timeout_seconds: float = Field(default=60.0)
    llm_max_retries: int = Field(default=2)

    # Per-client throttling of the analyze endpoint
    rate_limit_enabled: bool = Field(default=True)
    analyze_rate_limit_requests: int = Field(default=3)
    analyze_rate_limit_window: int = Field(default=60)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="text")
    log_file: str | None = Field(default=None)

    # Testing
    mock_llm: bool = Field(default=False)

    # Analysis policy
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def llm_enabled(self) -> bool:
        key = self.anthropic_api_key.strip()
        return bool(key) and not self.mock_llm and key != "your_api_key_here"

    @property
    def effective_cors_origins(self) -> list[str]:
        origins = list(self.cors_origins)
        if self.is_production and self.frontend_url not in origins:
            origins.append(self.frontend_url)
        return origins


settings = Settings()


def get_settings() -> Settings:
    return settings
