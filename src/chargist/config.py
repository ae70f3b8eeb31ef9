"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="CHARGIST_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Chargist Directory API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root logging level applied by create_app.")

    store_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Charger store implementation backing the directory.",
    )
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )
    store_timeout_seconds: float = Field(default=30.0, gt=0.0)
    store_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0.0,
        description="Interval at which remote live queries are re-read for changes.",
    )
    store_max_retries: int = Field(default=3, ge=0)
    store_backoff_seconds: float = Field(default=1.0, ge=0.0)

    places_api_key: Optional[str] = Field(default=None, description="Google Places API key.")
    places_base_url: str = Field(default="https://places.googleapis.com/v1")
    places_timeout_seconds: float = Field(default=10.0, gt=0.0)
    places_max_retries: int = Field(default=2, ge=0)
    places_backoff_seconds: float = Field(default=0.5, ge=0.0)

    nearby_default_radius_m: int = Field(default=500, ge=1)
    nearby_categories: tuple[str, ...] = Field(
        default=("restaurant", "store", "gas_station", "cafe"),
        description="Place categories queried around a charger.",
    )
    nearby_max_parallel_requests: int = Field(default=4, ge=1)
    nearby_fallback_enabled: bool = Field(
        default=True,
        description="Return the built-in places list when every category comes back empty.",
    )

    index_threshold: int = Field(
        default=256,
        ge=0,
        description="Collection size above which bounds queries use a spatial index.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", "nearby_categories", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
