import os


def _normalize_database_url(url: str) -> str:
    # Render/Heroku sometimes provide postgres:// which SQLAlchemy expects as postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


class Config:
    # Base directory of the backend (one level above this package)
    BACKEND_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    INSTANCE_DIR = os.path.join(BACKEND_DIR, "instance")

    ENV = (os.getenv("SETTLEMENT_ENV", "dev") or "dev").strip().lower()
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    _default_sqlite_path = os.path.join(INSTANCE_DIR, "settlement.db").replace("\\", "/")
    SQLALCHEMY_DATABASE_URI = _normalize_database_url(
        os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URI") or f"sqlite:///{_default_sqlite_path}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    AUTO_CREATE_TABLES = os.getenv("AUTO_CREATE_TABLES", "1").strip() == "1"

    # CORS: comma-separated origins for web builds
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    # Inbound payment processor events
    PROCESSOR_WEBHOOK_SECRET = os.getenv("PROCESSOR_WEBHOOK_SECRET", "")
    WEBHOOK_TOLERANCE_SECONDS = _int_env("WEBHOOK_TOLERANCE_SECONDS", 300)
    EVENT_DEDUP_WINDOW_SECONDS = _int_env("EVENT_DEDUP_WINDOW_SECONDS", 300)
    EVENT_DEDUP_HIGH_WATER = _int_env("EVENT_DEDUP_HIGH_WATER", 1000)
    EVENT_MAX_ATTEMPTS = _int_env("EVENT_MAX_ATTEMPTS", 3)

    # Carrier callbacks
    SHIPPING_WEBHOOK_SECRET = os.getenv("SHIPPING_WEBHOOK_SECRET", "")
    ESCROW_HOLD_DAYS = _int_env("ESCROW_HOLD_DAYS", 7)
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "0").strip() == "1"

    # Transactional email
    RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
    MAIL_FROM = os.getenv("MAIL_FROM", "Marketplace <orders@example.com>")
