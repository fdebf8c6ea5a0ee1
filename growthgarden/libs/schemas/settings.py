"""Application settings management leveraging pydantic v2."""

from __future__ import annotations

import os
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Containers get their configuration from the environment, not .env files.
if os.getenv("ENVIRONMENT", "development") in {"development", "dev", "local"}:
    load_dotenv(override=False)

_DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173,http://localhost:3000,http://127.0.0.1:5173,"
    "https://growthgarden-app.vercel.app"
)


class AppSettings(BaseSettings):
    """Typed configuration sourced from environment variables."""

    app_name: str = Field(
        default="GrowthGarden",
        validation_alias=AliasChoices("APP_NAME", "GROWTHGARDEN_APP_NAME"),
    )
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENVIRONMENT", "GROWTHGARDEN_ENVIRONMENT", "NODE_ENV"),
    )
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("PORT", "GROWTHGARDEN_PORT"),
    )

    # Database
    database_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "SUPABASE_DB_URL", "GROWTHGARDEN_DATABASE_URL"),
    )
    db_pool_min_size: int = Field(
        default=0,
        validation_alias=AliasChoices("DB_POOL_MIN_SIZE", "GROWTHGARDEN_DB_POOL_MIN_SIZE"),
    )
    db_pool_max_size: int = Field(
        default=3,
        validation_alias=AliasChoices("DB_POOL_MAX_SIZE", "GROWTHGARDEN_DB_POOL_MAX_SIZE"),
    )
    db_connect_timeout: float = Field(
        default=10.0,
        validation_alias=AliasChoices("DB_CONNECT_TIMEOUT", "GROWTHGARDEN_DB_CONNECT_TIMEOUT"),
    )
    db_command_timeout: float = Field(
        default=60.0,
        validation_alias=AliasChoices("DB_COMMAND_TIMEOUT", "GROWTHGARDEN_DB_COMMAND_TIMEOUT"),
    )
    db_max_inactive_lifetime: float = Field(
        default=300.0,
        validation_alias=AliasChoices(
            "DB_MAX_INACTIVE_LIFETIME", "GROWTHGARDEN_DB_MAX_INACTIVE_LIFETIME"
        ),
    )
    # auto: let the driver negotiate; disable: plain TCP; require: TLS without verification.
    db_ssl_mode: str = Field(
        default="auto",
        validation_alias=AliasChoices("DB_SSL_MODE", "GROWTHGARDEN_DB_SSL_MODE"),
    )
    supabase_pooler_host: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_POOLER_HOST", "GROWTHGARDEN_SUPABASE_POOLER_HOST"),
    )
    supabase_pooler_port: int = Field(
        default=6543,
        validation_alias=AliasChoices("SUPABASE_POOLER_PORT", "GROWTHGARDEN_SUPABASE_POOLER_PORT"),
    )

    # Identity provider
    supabase_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_URL", "GROWTHGARDEN_SUPABASE_URL"),
    )
    supabase_anon_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SUPABASE_ANON_KEY", "GROWTHGARDEN_SUPABASE_ANON_KEY", "SUPABASE_SERVICE_KEY"
        ),
    )
    auth_timeout_seconds: float = Field(
        default=10.0,
        validation_alias=AliasChoices("AUTH_TIMEOUT_SECONDS", "GROWTHGARDEN_AUTH_TIMEOUT_SECONDS"),
    )
    demo_mode: bool = Field(
        default=False,
        validation_alias=AliasChoices("DEMO_MODE", "GROWTHGARDEN_DEMO_MODE"),
    )
    demo_user_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("DEMO_USER_ID", "GROWTHGARDEN_DEMO_USER_ID"),
    )
    demo_user_email: str = Field(
        default="demo@growthgarden.local",
        validation_alias=AliasChoices("DEMO_USER_EMAIL", "GROWTHGARDEN_DEMO_USER_EMAIL"),
    )

    # AI collaborator
    openai_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "GROWTHGARDEN_OPENAI_API_KEY"),
    )
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        validation_alias=AliasChoices("OPENAI_BASE_URL", "GROWTHGARDEN_OPENAI_BASE_URL"),
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("OPENAI_MODEL", "GROWTHGARDEN_OPENAI_MODEL"),
    )
    ai_timeout_seconds: float = Field(
        default=12.0,
        validation_alias=AliasChoices("AI_TIMEOUT_SECONDS", "GROWTHGARDEN_AI_TIMEOUT_SECONDS"),
    )
    enable_ai_insights: bool = Field(
        default=True,
        validation_alias=AliasChoices("ENABLE_AI_INSIGHTS", "GROWTHGARDEN_ENABLE_AI_INSIGHTS"),
    )

    # HTTP
    cors_origins: str = Field(
        default=_DEFAULT_CORS_ORIGINS,
        validation_alias=AliasChoices("CORS_ORIGINS", "GROWTHGARDEN_CORS_ORIGINS", "FRONTEND_URL"),
    )
    cors_origin_regex: str | None = Field(
        default=r"https://.*\.vercel\.app",
        validation_alias=AliasChoices("CORS_ORIGIN_REGEX", "GROWTHGARDEN_CORS_ORIGIN_REGEX"),
    )

    model_config = SettingsConfigDict(
        env_file=(".env", "growthgarden/.env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"production", "prod"}

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins as a list, dropping blanks."""

        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Load environment variables and return a cached settings instance."""

    return AppSettings()


__all__ = ["AppSettings", "get_settings"]
