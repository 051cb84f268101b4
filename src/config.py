"""Application configuration loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "HealthPath"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Document store ---
    document_store: str = "memory"  # memory | postgres
    database_url: str = ""  # postgres DSN, required when document_store=postgres
    db_pool_min_size: int = 2
    db_pool_max_size: int = 20
    db_command_timeout: int = 30

    # --- Local key-value storage (secure → persistent → memory) ---
    storage_dir: Path = Path(".healthpath")
    storage_encryption_key: str = ""  # Fernet key; secure tier is skipped when empty

    # --- Auth (bearer JWT verified against a JWKS endpoint) ---
    auth_jwks_url: str = ""  # empty disables the auth middleware
    auth_audience: str | None = None
    auth_issuer: str | None = None
    auth_algorithms: list[str] = ["RS256"]

    # --- Tracker ---
    period_history_cache_seconds: int = 300
    day_log_max_range_days: int = 366

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:8081"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def secure_store_path(self) -> Path:
        return self.storage_dir / "secure.sqlite3"

    @property
    def persistent_store_path(self) -> Path:
        return self.storage_dir / "store.sqlite3"


@lru_cache
def get_settings() -> Settings:
    return Settings()
