"""Application configuration management using Pydantic Settings."""

from typing import List
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./quotebook.db"

    # API
    API_V1_PREFIX: str = "/api"

    # CORS
    CORS_ORIGINS: List[str] = ['http://localhost:8081']

    # Environment
    ENVIRONMENT: str = "development"

    # PayFast merchant credentials (defaults are the public sandbox merchant)
    PAYFAST_MERCHANT_ID: str = "10000100"
    PAYFAST_MERCHANT_KEY: str = "46f0cd694581a"
    PAYFAST_PASSPHRASE: str = ""  # Empty for the default sandbox account
    PAYFAST_SANDBOX: bool = True

    # Gateway return endpoints, intercepted by the embedded payment browser
    PAYFAST_RETURN_URL: str = "https://vibeventz.app/payment/return"
    PAYFAST_CANCEL_URL: str = "https://vibeventz.app/payment/cancel"
    PAYFAST_NOTIFY_URL: str = "https://vibeventz.app/payment/notify"

    # Payer name sent when the client profile has none
    PAYFAST_PAYER_FIRST_NAME: str = "Vibeventz"
    PAYFAST_PAYER_LAST_NAME: str = "User"

    # Quote Settings
    QUOTE_VALIDITY_DAYS: int = 7  # Sent revisions can be accepted for 7 days

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v) -> List[str]:
        """Parse CORS_ORIGINS from JSON string to list."""
        if isinstance(v, str):
            return json.loads(v)
        return v

    @field_validator("QUOTE_VALIDITY_DAYS")
    @classmethod
    def validate_validity_days(cls, v: int) -> int:
        """Reject non-positive quote validity windows."""
        if v < 1:
            raise ValueError("QUOTE_VALIDITY_DAYS must be at least 1")
        return v

    @property
    def payfast_base_url(self) -> str:
        """Process endpoint for the configured PayFast environment."""
        if self.PAYFAST_SANDBOX:
            return "https://sandbox.payfast.co.za/eng/process"
        return "https://www.payfast.co.za/eng/process"


# Global settings instance
settings = Settings()
