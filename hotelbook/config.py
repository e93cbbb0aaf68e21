"""Application configuration via pydantic-settings."""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Dict, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_food_plan_rates() -> Dict[str, Decimal]:
    # Per person, per night, in the hotel currency
    return {
        "None": Decimal("0"),
        "Breakfast": Decimal("1500"),
        "Half Board": Decimal("3500"),
        "Full Board": Decimal("5500"),
        "À la carte": Decimal("2500"),
    }


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Hotelbook"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database (empty URL keeps bookings in memory)
    database_url: str = ""
    db_pool_size: int = 10
    db_max_overflow: int = 5

    # Redis / Celery
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Room directory seed (JSON list of rooms)
    rooms_file: Optional[str] = None

    # Pricing
    currency: str = "LKR"
    tax_rate: Decimal = Decimal("0.12")
    service_charge_rate: Decimal = Decimal("0.10")
    food_plan_rates: Dict[str, Decimal] = Field(default_factory=_default_food_plan_rates)

    # Booking rules
    max_nights: int = 365
    max_advance_booking_days: int = 365
    hold_duration_minutes: int = 24 * 60
    hold_sweep_minutes: int = 15
    completion_sweep_hour: int = 12

    # Approval policy per payment method
    require_approval_for_cash: bool = True
    require_approval_for_bank: bool = True
    require_approval_for_card: bool = False

    # Refunds for paid bookings that are cancelled or rejected
    refund_policy: Literal["standard", "partial", "none"] = "standard"
    refund_processing_fee: Decimal = Decimal("0")

    # PayHere
    payhere_merchant_id: Optional[str] = None
    payhere_merchant_secret: Optional[str] = None
    payhere_app_id: Optional[str] = None
    payhere_app_secret: Optional[str] = None
    payhere_sandbox: bool = True
    payhere_return_url: str = "http://localhost:3000/booking/success"
    payhere_cancel_url: str = "http://localhost:3000/booking/cancel"
    payhere_notify_url: str = "http://localhost:8000/api/v1/webhooks/payhere"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    def requires_approval(self, payment_method: str) -> bool:
        """Whether an admin must approve bookings paid with this method."""
        return {
            "cash": self.require_approval_for_cash,
            "bank": self.require_approval_for_bank,
            "card": self.require_approval_for_card,
        }.get(str(payment_method), True)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
