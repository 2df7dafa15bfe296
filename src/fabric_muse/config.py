"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    kie_api_key: str
    kie_base_url: str = "https://api.kie.ai/api/v1/jobs"
    kie_model: str = "nano-banana-pro"
    kie_aspect_ratio: str = "3:4"
    kie_resolution: str = "1K"
    kie_output_format: str = "png"
    kie_timeout_seconds: float = 15.0
    fetch_timeout_seconds: float = 30.0
    swatch_bucket: str = "swatches"
    silhouette_bucket: str = "silhouettes"
    generated_bucket: str = "generations"
    max_upload_bytes: int = 8 * 1024 * 1024
    job_timeout_seconds: int = 900
    cors_allowed_origins: str | None = "*"
    log_level: str = "INFO"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_allowed_origins(raw: str | None) -> list[str]:
    """Parse allowed CORS origins from env."""
    if raw is None:
        return ["*"]
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return ["*"]
    origins: list[str] = []
    for chunk in cleaned.split(","):
        value = chunk.strip().rstrip("/")
        if value:
            origins.append(value)
    return origins or ["*"]
