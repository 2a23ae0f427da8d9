import os
from dotenv import load_dotenv
load_dotenv()

ADMIN_API_KEY = os.getenv("ADMIN_API_KEY", "dev-admin-change-this")
JWT_SECRET = os.getenv("JWT_SECRET", "dev-jwt-change-this")
JWT_ALG = os.getenv("JWT_ALG", "HS256")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


class Settings:
    database_url = os.getenv("DATABASE_URL", "sqlite:///./salonbook.db")
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    reservation_hold_minutes = _int_env("RESERVATION_HOLD_MINUTES", 10)
    slot_interval_minutes = _int_env("SLOT_INTERVAL_MINUTES", 30)
    default_service_duration = _int_env("DEFAULT_SERVICE_DURATION", 30)
    paid_break_minutes = _int_env("PAID_BREAK_MINUTES", 20)
    recurrence_default_weeks = _int_env("RECURRENCE_DEFAULT_WEEKS", 12)
    default_timezone = os.getenv("DEFAULT_TIMEZONE", "UTC")

    log_slow_queries = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
    slow_query_threshold = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


settings = Settings()
