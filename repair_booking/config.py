"""Runtime configuration loaded from the environment.

Values come from process environment variables, with a local `.env` file
loaded first for development.
"""

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv

load_dotenv()


def _safe_int(env_var: str, default: str) -> int:
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid integer for {env_var}: {raw!r}") from None


def _safe_float(env_var: str, default: str) -> float:
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(f"Invalid float for {env_var}: {raw!r}") from None


def _safe_decimal(env_var: str, default: str) -> Decimal:
    """Money and rates are parsed straight into Decimal, never through float."""
    raw = os.getenv(env_var, default)
    try:
        return Decimal(raw)
    except (InvalidOperation, TypeError):
        raise ValueError(f"Invalid decimal for {env_var}: {raw!r}") from None


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = os.getenv("DATABASE_URL", "sqlite:///./repair_booking.db")


@dataclass(frozen=True)
class PricingDefaults:
    """Marketplace-wide pricing defaults; shops may override fees and deposit."""

    platform_fee: Decimal = _safe_decimal("PLATFORM_FEE", "2.99")
    tax_rate: Decimal = _safe_decimal("TAX_RATE", "0.0825")
    deposit_percent: Decimal = _safe_decimal("DEFAULT_DEPOSIT_PERCENT", "20")
    towing_fee: Decimal = _safe_decimal("TOWING_FEE", "85.00")
    mobile_fee: Decimal = _safe_decimal("MOBILE_FEE", "45.00")


@dataclass(frozen=True)
class PolicyConfig:
    cancellation_window_hours: int = _safe_int("CANCELLATION_WINDOW_HOURS", "24")
    reminder_hour: int = _safe_int("REMINDER_HOUR", "9")


@dataclass(frozen=True)
class TwilioConfig:
    account_sid: str | None = os.getenv("TWILIO_ACCOUNT_SID")
    auth_token: str | None = os.getenv("TWILIO_AUTH_TOKEN")
    whatsapp_from: str = os.getenv(
        "TWILIO_WHATSAPP_FROM",
        "whatsapp:+14155238886",  # Twilio Sandbox default
    )


@dataclass(frozen=True)
class PaymentsConfig:
    api_url: str | None = os.getenv("PAYMENTS_API_URL")
    timeout_seconds: float = _safe_float("PAYMENTS_TIMEOUT_SECONDS", "10.0")


DATABASE = DatabaseConfig()
PRICING = PricingDefaults()
POLICY = PolicyConfig()
TWILIO = TwilioConfig()
PAYMENTS = PaymentsConfig()
