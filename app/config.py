# app/config.py

from decimal import Decimal
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App
    app_name: str = "Receiving API"
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    frontend_url: str = "http://localhost:3000"

    # Supabase
    supabase_url: str
    supabase_service_role_key: str
    receipt_bucket: str = "receipts"

    # Anthropic (Claude)
    anthropic_api_key: str
    anthropic_model: str = "claude-sonnet-4-20250514"

    # Open Food Facts
    openfoodfacts_url: str = "https://world.openfoodfacts.org/api/v2/product"
    external_lookup_timeout: float = 8.0

    # Feature flags
    enable_assisted_matching: bool = True
    enable_receipt_ocr: bool = True

    # Matching config
    fuzzy_accept_threshold: float = 0.3
    fuzzy_high_threshold: float = 0.6
    variance_tolerance: Decimal = Decimal("1.00")
    min_line_price: Decimal = Decimal("0.50")
    max_line_price: Decimal = Decimal("500")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
