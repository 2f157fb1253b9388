from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    DotEnvSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class SnippetVaultConfig(BaseSettings):
    """
    Runtime configuration based on Pydantic Settings.

    - Reads environment variables and `.env` / `.env.local` automatically.
    - Performs type coercion and clear validation.
    """

    # Store backend
    STORE_BACKEND: str = Field(
        default="memory", description="Snippet store backend: memory or mongodb"
    )
    MONGODB_URL: Optional[str] = Field(
        default=None, description="MongoDB connection string (mongodb backend only)"
    )
    DATABASE_NAME: str = Field(default="snippet_vault", description="MongoDB database name")
    SNIPPETS_COLLECTION: str = Field(default="snippets", description="MongoDB collection name")
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = Field(
        default=3_000,
        ge=100,
        le=600_000,
        description="MongoDB server selection timeout in ms (serverSelectionTimeoutMS)",
    )

    # Snippets
    DEFAULT_LANGUAGE: str = Field(
        default="javascript", description="Language assigned to drafts that carry none"
    )
    MAX_CODE_SIZE: int = Field(
        default=100_000,
        ge=1_000,
        le=10_000_000,
        description="Maximum code size in characters",
    )

    # Cache / dispatcher behavior
    DELETE_NOT_FOUND_IS_SUCCESS: bool = Field(
        default=True,
        description="Treat NotFound on delete as success (retry after a lost response)",
    )
    REFRESH_MAX_ATTEMPTS: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Fetch rounds a refresh may run while the entry keeps being invalidated",
    )

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Minimum log level")
    LOG_FORMAT: str = Field(default="json", description="json or console")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Allow chained .env files: .env.local first, then .env, after env vars."""
        return (
            init_settings,
            env_settings,
            DotEnvSettingsSource(settings_cls, env_file=".env.local", case_sensitive=True),
            DotEnvSettingsSource(settings_cls, env_file=".env", case_sensitive=True),
            file_secret_settings,
        )

    @field_validator("STORE_BACKEND", "LOG_FORMAT", "DEFAULT_LANGUAGE", mode="before")
    @classmethod
    def _lower(cls, v):
        return str(v or "").strip().lower()

    @field_validator("STORE_BACKEND")
    @classmethod
    def _validate_backend(cls, v: str) -> str:
        if v not in {"memory", "mongodb"}:
            raise ValueError("STORE_BACKEND must be 'memory' or 'mongodb'")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, v):
        return str(v or "INFO").strip().upper()

    @field_validator("MONGODB_URL")
    @classmethod
    def _validate_mongodb_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError(
                "MONGODB_URL must start with mongodb:// or mongodb+srv://"
            )
        return v

    @model_validator(mode="after")
    def _require_mongodb_url(self) -> "SnippetVaultConfig":
        if self.STORE_BACKEND == "mongodb" and not self.MONGODB_URL:
            raise ValueError("MONGODB_URL is required when STORE_BACKEND=mongodb")
        return self


def load_config() -> SnippetVaultConfig:
    """Load the configuration and return a fresh SnippetVaultConfig."""
    return SnippetVaultConfig()


config = load_config()
