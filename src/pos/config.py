"""Environment-driven settings for the POS service.

Protean itself reads its own domain configuration (databases, brokers, event
store). These settings cover what Protean does not know about: which payment
processor adapter to use, its credentials, and payment timing defaults.
"""

import os
from dataclasses import dataclass

DEFAULT_QR_EXPIRY_MINUTES = 10
DEFAULT_GATEWAY_TIMEOUT_SECONDS = 15.0


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    payment_gateway: str = "fake"  # fake | midtrans
    midtrans_server_key: str = ""
    midtrans_environment: str = "sandbox"  # sandbox | production
    qr_expiry_minutes: int = DEFAULT_QR_EXPIRY_MINUTES
    gateway_timeout_seconds: float = DEFAULT_GATEWAY_TIMEOUT_SECONDS

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def load_settings() -> Settings:
    """Build settings from environment variables."""
    return Settings(
        environment=(os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower(),
        payment_gateway=os.getenv("PAYMENT_GATEWAY", "fake").lower(),
        midtrans_server_key=os.getenv("MIDTRANS_SERVER_KEY", ""),
        midtrans_environment=os.getenv("MIDTRANS_ENVIRONMENT", "sandbox").lower(),
        qr_expiry_minutes=_env_int("QR_EXPIRY_MINUTES", DEFAULT_QR_EXPIRY_MINUTES),
        gateway_timeout_seconds=_env_float("GATEWAY_TIMEOUT_SECONDS", DEFAULT_GATEWAY_TIMEOUT_SECONDS),
    )
