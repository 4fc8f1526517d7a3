"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # API
    api_version: str = "0.1.0"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    debug: bool = False

    # Catalog store ("database" or "memory")
    catalog_store: str = "database"
    database_url: str = "postgresql+asyncpg://catalog:catalog_dev_password@db:5432/catalog"

    # Authentication
    migrator_api_key: str = "dev-api-key-change-in-production"

    # Source platform (WooCommerce). Used when the trigger omits credentials.
    woocommerce_site_url: str = ""
    woocommerce_consumer_key: str = ""
    woocommerce_consumer_secret: str = ""
    source_page_size: int = 100
    source_timeout: float = 30.0
    source_request_delay: float = 0.0

    # Image assets
    image_root: str = "public"
    image_public_prefix: str = "images/products"
    image_download_delay: float = 0.5
    image_download_timeout: float = 30.0

    # Logging
    log_level: str = "INFO"


settings = Settings()
