"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Commerce platform
    ecp_api_url: str = Field(
        default="https://api.europe-west1.gcp.commercetools.com",
        description="Commerce platform API base URL",
    )
    ecp_project_key: str = Field(default="dev-project", description="Platform project key")
    ecp_access_token: str = Field(
        default="dev-access-token-change-in-production",
        description="Bearer token for the platform API",
    )
    request_timeout_seconds: float = 10.0

    # Optimistic concurrency
    conflict_max_retries: int = Field(default=3, ge=0)
    conflict_backoff_seconds: float = Field(default=0.1, ge=0)
    conflict_backoff_multiplier: float = Field(default=2.0, ge=1)

    # Cart conventions
    main_shipping_address_key: str = "main-shipping-address"
    delivery_plan_container: str = "delivery-plans"
    contract_line_item_type_key: str = "contract-line-item"
    default_tax_mode: str = "ExternalAmount"

    # Logging
    log_level: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_prefix": "CARTSYNC_",
        "extra": "ignore",
    }


settings = Settings()
