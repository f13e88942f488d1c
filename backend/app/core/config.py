from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global SignFlow settings.
    Values are read from the environment and the .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project
    project_name: str = "SignFlow Admin API"
    api_v1_str: str = "/api/v1"
    debug: bool = False

    # Server
    server_host: str = "127.0.0.1"
    server_port: int = 8000

    # Database (submission ledger and audit trail)
    database_url: str = "sqlite:///./dev.db"

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Upstream e-signature API
    upstream_api_base_url: str = "http://localhost:3000"
    upstream_timeout_seconds: float = 15.0

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def resolved_upstream_url(self) -> str:
        """Upstream base URL without trailing slash."""
        return (self.upstream_api_base_url or "").strip().rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Return the cached global settings instance."""
    return Settings()


settings = get_settings()
