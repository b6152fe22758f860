from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Inventory provider
    provider_api_url: str = "https://integrations.nivoda.net/api/diamonds"
    provider_origin: str = "https://integrations.nivoda.net"
    provider_username: str = ""
    provider_password: str = ""
    provider_timeout_seconds: float = 15.0

    # Caller-scoped budget covering authenticate + execute + retry
    request_timeout_seconds: float = 30.0

    # Bearer token reuse across requests
    token_cache_enabled: bool = True
    token_expiry_margin_seconds: int = 60

    # Listings
    default_diamond_type: Literal["Natural", "Lab-Grown"] = "Natural"
    default_page_size: int = 20
    max_page_size: int = 100
    currency: str = "USD"
    use_placeholder_listings: bool = True

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""


settings = Settings()
