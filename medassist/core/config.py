import os
from datetime import time

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_time(value: str | None, default: time) -> time:
    if not value:
        return default
    return time.fromisoformat(value.strip())

APP_ENV = os.getenv("APP_ENV", "development")
DEBUG = _get_bool(os.getenv("DEBUG"), default=False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./medassist.db")

CORS_ALLOWED_ORIGINS = _get_list(
    os.getenv("CORS_ALLOWED_ORIGINS"),
    default=["http://localhost:5173", "http://localhost:3000"],
)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

BUSINESS_HOURS_START = _get_time(os.getenv("BUSINESS_HOURS_START"), default=time(9, 0))
BUSINESS_HOURS_END = _get_time(os.getenv("BUSINESS_HOURS_END"), default=time(17, 0))

DEFAULT_APPOINTMENT_DURATION_MINUTES = int(os.getenv("DEFAULT_APPOINTMENT_DURATION_MINUTES", "30"))
# Booking policy: longest appointment a patient may book.
MAX_APPOINTMENT_DURATION_MINUTES = int(os.getenv("MAX_APPOINTMENT_DURATION_MINUTES", "480"))
UPCOMING_APPOINTMENTS_LIMIT = int(os.getenv("UPCOMING_APPOINTMENTS_LIMIT", "5"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BUSINESS_HOURS_START >= BUSINESS_HOURS_END:
        raise RuntimeError("BUSINESS_HOURS_START must be earlier than BUSINESS_HOURS_END.")
    if DEFAULT_APPOINTMENT_DURATION_MINUTES <= 0 or MAX_APPOINTMENT_DURATION_MINUTES <= 0:
        raise RuntimeError("Appointment durations must be positive.")
