from decimal import Decimal
from functools import lru_cache
from typing import Union
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from entitlements.models import QuotaOverridePolicy


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # App Settings
    APP_NAME: str = "Service Marketplace Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False  # Exposes tracebacks in error responses
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = ["*"]

    # Quota policy
    QUOTA_OVERRIDE_POLICY: QuotaOverridePolicy = QuotaOverridePolicy.STRICT
    WARRANTY_CLAIM_MINIMUM: int = 3

    # Fee schedule
    CURRENCY: str = "INR"
    GST_RATE: Decimal = Decimal("0.18")
    VENDOR_SHARE: Decimal = Decimal("0.50")
    SMALL_JOB_THRESHOLD: Decimal = Decimal("500")
    ONLINE_SMALL_JOB_FEE: Decimal = Decimal("20")

    # Payment gateway
    PAYMENT_GATEWAY_SECRET: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Union[str, list[str]]):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("WARRANTY_CLAIM_MINIMUM")
    @classmethod
    def check_minimum(cls, v: int) -> int:
        if v < 0:
            raise ValueError("WARRANTY_CLAIM_MINIMUM must be >= 0")
        return v


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
