from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "storefront"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./storefront.db"


class StorefrontSettings(BaseSettings):
    """Settings for the storefront API, read from ``STOREFRONT_*`` variables."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8000)
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)

    database_url: str | None = Field(default=None)
    database_echo: bool = Field(default=False)
    auto_create_schema: bool = Field(default=True)

    jwt_secret: str = Field(default="change-me", min_length=1)
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = Field(default="HS256")
    jwt_expire_seconds: int = Field(default=60 * 60 * 24 * 7, gt=0)

    cart_ttl_days: int = Field(default=7, ge=1)
    session_cookie_name: str = Field(default="session_id")
    session_cookie_secure: bool = Field(default=True)

    blob_storage_dir: str = Field(default="./data/blobs")
    blob_base_url: str | None = Field(default=None)
    product_image_bucket: str = Field(default="product-images")

    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://localhost:8080"])
    order_number_attempts: int = Field(default=5, ge=1)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="STOREFRONT_", extra="ignore"
    )
