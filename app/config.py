"""
Configuration management for the Unified Marketing Dashboard
"""
from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Unified Marketing Dashboard"
    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Klaviyo (email platform)
    klaviyo_api_key: str = ""
    klaviyo_base_url: str = "https://a.klaviyo.com/api"
    klaviyo_revision: str = "2024-10-15"
    klaviyo_conversion_metric_id: Optional[str] = None  # "Placed Order" metric for revenue reports
    klaviyo_max_pages: int = 10

    # Triple Whale (commerce platform)
    triple_whale_api_key: str = ""
    triple_whale_base_url: str = "https://api.triplewhale.com/api/v2"
    triple_whale_shop_id: str = ""
    shop_timezone: str = "UTC"

    # "rest" talks to the HTTP API, "mcp" to the Moby natural-language tool over stdio
    commerce_transport: str = "rest"
    triple_whale_mcp_command: str = "npx -y @triplewhale/mcp-server-triplewhale start"

    # Transport
    request_timeout_seconds: float = 20.0
    retry_max_attempts: int = 3
    retry_base_delay: float = 1.0  # seconds
    retry_max_delay: float = 10.0  # seconds

    # Analytics rules
    default_lookback_days: int = 30
    attribution_window_days: int = 7
    email_source_marker: str = "klaviyo"
    churn_risk_threshold: int = 70

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
