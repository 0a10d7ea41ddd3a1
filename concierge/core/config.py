"""Application settings and configuration helpers."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly-typed configuration sourced from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    app_name: str = Field(default="Marketplace Assistant", description="Human-readable service name.")
    environment: str = Field(default="local", description="Deployment environment identifier.")
    log_level: str = Field(default="INFO", description="Application log level.")

    sqlite_path: Path = Field(
        default=Path("db/conversations.db"),
        description="Chat history DB path.",
    )
    history_window: int = Field(
        default=10,
        ge=0,
        description="Number of recent turns handed to the intent extractor.",
    )

    confirmation_ttl_seconds: int = Field(
        default=300,
        ge=1,
        description="Lifetime of a confirmation token.",
    )
    token_mode: Literal["opaque", "signed"] = Field(
        default="opaque",
        description="Random server-side tokens or HMAC-signed self-describing tokens.",
    )
    token_secret: str | None = Field(
        default=None,
        description="Signing secret, required when token_mode is 'signed'.",
    )
    extractor_min_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Drafts below this confidence trigger a clarification reply.",
    )

    openrouter_api_key: str | None = Field(
        default=None,
        description="Optional OpenRouter API key; rule-based extraction is used without it.",
    )
    openrouter_model: str = Field(
        default="minimax/minimax-m2:free",
        description="OpenRouter model identifier.",
    )
    openrouter_referer: str | None = Field(
        default=None,
        description="Referer header required by OpenRouter (your app URL).",
    )
    openrouter_title: str | None = Field(
        default="Marketplace Assistant",
        description="Title header sent to OpenRouter.",
    )
    openrouter_timeout_seconds: float = Field(default=15.0, gt=0)
    openrouter_rate_limit_per_sec: float = Field(
        default=1.0,
        ge=0.0,
        description="Minimum interval (seconds) between OpenRouter API calls.",
    )

    booking_api_base_url: AnyHttpUrl | None = Field(
        default=None,
        description="Marketplace REST API; an in-memory booking backend is used when unset.",
    )
    booking_api_timeout_seconds: float = Field(default=10.0, gt=0)

    frontend_origin: AnyHttpUrl | None = Field(
        default=None,
        description="Allowed frontend origin (CORS). If omitted, defaults to localhost dev server.",
    )
    additional_origins: List[AnyHttpUrl] = Field(
        default_factory=list,
        description="Additional allowed CORS origins for multi-client deployments.",
    )

    @model_validator(mode="after")
    def _check_token_secret(self) -> "Settings":
        if self.token_mode == "signed" and not self.token_secret:
            raise ValueError("token_secret is required when token_mode is 'signed'")
        return self

    @property
    def cors_origins(self) -> list[str]:
        """Return the full list of allowed CORS origins."""

        origins: list[str] = []

        if self.frontend_origin:
            origins.append(str(self.frontend_origin).rstrip("/"))
        else:
            origins.extend([
                "http://localhost:5173",
                "http://127.0.0.1:5173",
            ])

        for origin in self.additional_origins:
            origins.append(str(origin).rstrip("/"))

        seen: set[str] = set()
        unique: list[str] = []
        for origin in origins:
            if origin not in seen:
                seen.add(origin)
                unique.append(origin)

        return unique

    @property
    def openrouter_enabled(self) -> bool:
        return bool(self.openrouter_api_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()
