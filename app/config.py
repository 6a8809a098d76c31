from functools import lru_cache
from pathlib import Path
from typing import Annotated, List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = Field(default="Tandem Chat", description="Human readable service name")
    environment: str = Field(default="development", description="Deployment environment name")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Root logging level")

    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="List of allowed CORS origins",
    )

    media_root: Path = Field(default=Path("uploads"), description="Directory receiving uploaded blobs")
    media_base_url: str = Field(
        default="/uploads", description="Path prefix under which uploaded blobs are served"
    )
    max_upload_size: int = Field(
        default=10 * 1024 * 1024, description="Maximum upload size in bytes"
    )

    websocket_keepalive_timeout_seconds: float = Field(
        default=30.0,
        description="Idle seconds before the server checks the socket and may ping it",
    )
    websocket_keepalive_ping_interval_seconds: float = Field(
        default=25.0,
        description="Minimum seconds between keepalive pings on an idle socket",
    )

    default_nickname: str = Field(default="Anonymous")
    default_age: str = Field(default="?")
    default_avatar_seed: str = Field(default="unknown")
    stranger_nickname: str = Field(
        default="Stranger", description="Nickname shown for a partner without a profile"
    )

    model_config = SettingsConfigDict(
        env_prefix="TANDEM_",
        env_file=str(Path(__file__).resolve().parents[1] / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v):  # type: ignore[override]
        if v in (None, "", Ellipsis):
            return ["*"]
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, (list, tuple, set)):
            return list(v)
        return v

    @field_validator("media_root", mode="before")
    @classmethod
    def resolve_media_root(cls, value: str | Path) -> Path:
        if isinstance(value, Path):
            return value.resolve()
        return Path(value).resolve()

    @field_validator("log_level", mode="before")
    @classmethod
    def normalise_log_level(cls, value: str) -> str:
        return str(value or "INFO").upper()


@lru_cache
def get_settings() -> Settings:
    return Settings()
