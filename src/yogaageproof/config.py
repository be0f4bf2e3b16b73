"""Application configuration."""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    photos_bucket: str = "progress-photos"
    data_dir: Path = Path.home() / ".yogaageproof"
    ai_rate_limit: int = 50
    ai_rate_window_seconds: float = 60.0
    restore_batch_size: int = 5
    low_storage_threshold_bytes: int = 500 * 1024 * 1024
    network_probe_url: str | None = None
    network_poll_interval_seconds: float = 30.0
    connection_type_override: str | None = None
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def photos_dir(self) -> Path:
        return self.data_dir / "progress_photos"

    @property
    def keys_dir(self) -> Path:
        return self.data_dir / "keys"

    @property
    def sync_db_path(self) -> Path:
        return self.data_dir / "sync_queue.sqlite3"

    @property
    def probe_url(self) -> str:
        """URL used to check internet reachability."""
        if self.network_probe_url:
            return self.network_probe_url
        return f"{self.supabase_url.rstrip('/')}/auth/v1/health"
