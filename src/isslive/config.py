"""Configuration management using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # HTTP
    host: str = "0.0.0.0"
    port: int = 3000

    # Database
    database_url: str = "sqlite:///data.db"
    sqlite_busy_timeout_seconds: float = 30.0
    retention_cap: int = 100

    # Catalog
    catalog_path: str = "PUIList.xml"
    catalog_encoding: str = "utf-16-le"

    # Feed
    feed_enabled: bool = True
    feed_server_url: str = "https://push.lightstreamer.com"
    feed_adapter_set: str = "ISSLIVE"

    # Logging
    log_level: str = "INFO"


settings = Settings()
