from __future__ import annotations

from typing import Literal, Self

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.constants import DB_SCHEMA

# Load .env once at module import so every BaseSettings subclass sees the env vars
load_dotenv()


class DatabaseSettings(BaseSettings):
    """PostgreSQL connection settings. Env vars prefixed with DATABASE_."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    name: str = "tasklink"
    schema_: str = Field(DB_SCHEMA, validation_alias="DATABASE_SCHEMA")

    @field_validator("schema_")
    @classmethod
    def _validate_schema(cls, v: str) -> str:
        if v != DB_SCHEMA:
            msg = f"DATABASE_SCHEMA must be '{DB_SCHEMA}' (got '{v}')."
            raise ValueError(msg)
        return v


class PlaneSettings(BaseSettings):
    """Plane (source system) API settings. Env vars prefixed with PLANE_."""

    model_config = SettingsConfigDict(env_prefix="PLANE_")

    api_key: str = ""
    workspace_slug: str = ""
    base_url: str = "https://api.plane.so/api/v1"


class AsanaSettings(BaseSettings):
    """Asana (target system) API settings. Env vars prefixed with ASANA_."""

    model_config = SettingsConfigDict(env_prefix="ASANA_")

    access_token: str = ""
    base_url: str = "https://app.asana.com/api/1.0"
    page_size: int = Field(100, gt=0, le=100)


class HttpSettings(BaseSettings):
    """Shared HTTP client settings. Env vars prefixed with HTTP_."""

    model_config = SettingsConfigDict(env_prefix="HTTP_")

    timeout_s: float = Field(30.0, gt=0)


class MatchingSettings(BaseSettings):
    """Candidate scoring and auto-match settings. Env vars prefixed with MATCHING_."""

    model_config = SettingsConfigDict(env_prefix="MATCHING_")

    suggest_min_confidence: float = 0.7  # single-record suggestions
    auto_match_min_confidence: float = 0.5  # "auto-match all" pass
    fuzzy_min_confidence: float = 0.8  # size-biased fuzzy strategy
    fallback_min_confidence: float = 0.7  # floor for approximate-search results
    fallback_enabled: bool = True
    max_candidates: int = Field(5, gt=0)
    strategy: Literal["rules", "fuzzy"] = "rules"

    @model_validator(mode="after")
    def _validate(self) -> Self:
        for name in (
            "suggest_min_confidence",
            "auto_match_min_confidence",
            "fuzzy_min_confidence",
            "fallback_min_confidence",
        ):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0.0, 1.0], got {value}")
        return self


class ChangeDetectionSettings(BaseSettings):
    """Change detection and secondary-fetch pacing. Env vars prefixed with CHANGES_."""

    model_config = SettingsConfigDict(env_prefix="CHANGES_")

    # Plane: 60 req/min, Asana: 150 req/min
    batch_size: int = Field(3, gt=0)
    batch_delay_s: float = Field(1.5, ge=0)
    description_preview_chars: int = Field(100, gt=0)
    # Side whose modified timestamp moves on comment activity
    trusted_modified_side: Literal["source", "target"] = "target"


class Settings(BaseSettings):
    """Root settings composing all sub-configurations."""

    model_config = SettingsConfigDict(extra="ignore")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    plane: PlaneSettings = Field(default_factory=PlaneSettings)
    asana: AsanaSettings = Field(default_factory=AsanaSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    matching: MatchingSettings = Field(default_factory=MatchingSettings)
    changes: ChangeDetectionSettings = Field(default_factory=ChangeDetectionSettings)
    log_json: bool = True
    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR"}
        if v.upper() not in allowed:
            msg = f"LOG_LEVEL must be one of {sorted(allowed)} (got '{v}')"
            raise ValueError(msg)
        return v.upper()


def get_settings() -> Settings:
    """Load and validate settings. Raises ValidationError on invalid values."""
    return Settings()
