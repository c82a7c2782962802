from __future__ import annotations

from functools import lru_cache
from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    # Core
    app_name: str = Field(default="family-meal-planner")
    environment: str = Field(default="dev")  # dev|staging|prod
    log_json: bool = Field(default=True)
    log_level: str = Field(default="INFO")

    # Auth (JWKS issuer or shared HS256 secret)
    auth_issuer: str | None = Field(default=None)
    auth_jwks_url: str | None = Field(default=None)
    auth_audience: str | None = Field(default=None)
    auth_jwt_secret: str | None = Field(default=None)
    auth_disable_verification: bool = Field(default=False)

    # Data
    database_url: str | None = Field(default=None)

    # API
    cors_allowed_origins: List[str] = Field(default_factory=lambda: ["*"])
    meal_generation_rate_limit: str = Field(default="10/minute")

    # OpenAI
    openai_api_key: str | None = Field(default=None)
    openai_meal_model: str = Field(default="gpt-4o")
    openai_meal_temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    openai_meal_max_output_tokens: int = Field(default=3000)
    openai_request_timeout_seconds: int = Field(default=60, ge=5, le=300)
    meal_generation_default_count: int = Field(default=5, ge=1, le=20)

    # Observability
    sentry_dsn: str | None = Field(default=None)
    sentry_traces_sample_rate: float = Field(default=0.0)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @field_validator("cors_allowed_origins", mode="before")
    @classmethod
    def _csv_to_list(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
