from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "foerderportal"
    db_username: str = "foerderportal"
    db_password: str = "secret"
    db_pool_max_size: int = 10

    storage_backend: str = "local"
    files_root: Path = Path("/app/files")
    storage_delete_batch_size: int = 10

    max_upload_size_bytes: int = 50 * 1024 * 1024
    max_concurrent_uploads: int = 3
    upload_timeout_seconds: float = 300.0

    progress_tick_seconds: float = 0.2
    progress_hold_seconds: float = 0.5
    progress_debounce_seconds: float = 0.5
    progress_min_delta: int = 1

    collation_locale: str = "de_DE"
