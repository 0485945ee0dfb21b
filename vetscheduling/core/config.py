import os
from decimal import Decimal, InvalidOperation

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_decimal(name: str, default: str) -> Decimal:
    raw_value = os.getenv(name, default)
    try:
        return Decimal(raw_value)
    except InvalidOperation as exc:
        raise RuntimeError(f"{name} must be a decimal number, got {raw_value!r}.") from exc

APP_ENV = os.getenv("APP_ENV", "development")
APP_DEBUG = _get_bool(os.getenv("APP_DEBUG"), default=False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./vetscheduling.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:4200"])

DEFAULT_APPOINTMENT_DURATION_MINUTES = int(os.getenv("DEFAULT_APPOINTMENT_DURATION_MINUTES", "30"))
EMERGENCY_PRICE_MULTIPLIER = _get_decimal("EMERGENCY_PRICE_MULTIPLIER", "1.5")
DEFAULT_HOUSE_CALL_SURCHARGE = _get_decimal("DEFAULT_HOUSE_CALL_SURCHARGE", "0")

SCHEDULE_LOCK_TIMEOUT_SECONDS = float(os.getenv("SCHEDULE_LOCK_TIMEOUT_SECONDS", "5"))

def validate_runtime_config() -> None:
    if DEFAULT_APPOINTMENT_DURATION_MINUTES < 5:
        raise RuntimeError("DEFAULT_APPOINTMENT_DURATION_MINUTES must be at least 5.")
    if EMERGENCY_PRICE_MULTIPLIER < 1:
        raise RuntimeError("EMERGENCY_PRICE_MULTIPLIER cannot discount emergency appointments.")
    if DEFAULT_HOUSE_CALL_SURCHARGE < 0:
        raise RuntimeError("DEFAULT_HOUSE_CALL_SURCHARGE cannot be negative.")
    if SCHEDULE_LOCK_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("SCHEDULE_LOCK_TIMEOUT_SECONDS must be positive.")
    if APP_ENV.lower() == "production" and DATABASE_URL.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must point at a server database in production.")
