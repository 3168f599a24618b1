import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

def _bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite database file stored next to the package as courtslot.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "courtslot.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Migrations own the schema; tests flip this on
    CREATE_TABLES_ON_STARTUP = _bool("CREATE_TABLES_ON_STARTUP", "false")

    # Session cookie written by the auth service
    AUTH_COOKIE_NAME = "courtslot_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Operating hours and slot grid
    OPEN_TIME = os.getenv("OPEN_TIME", "08:00")
    CLOSE_TIME = os.getenv("CLOSE_TIME", "00:00")   # at or before OPEN_TIME means next day
    SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "60"))
    MAX_SLOT_HOURS = int(os.getenv("MAX_SLOT_HOURS", "8"))

    # Cart holds
    CART_EXPIRY_MINUTES = int(os.getenv("CART_EXPIRY_MINUTES", "60"))
    WAITLIST_ENABLED = _bool("WAITLIST_ENABLED", "true")

    # Payment deadline for unpaid transactions and promoted waitlist entries
    BUSINESS_START_HOUR = int(os.getenv("BUSINESS_START_HOUR", "8"))
    BUSINESS_END_HOUR = int(os.getenv("BUSINESS_END_HOUR", "17"))
    WAITLIST_PAYMENT_MINUTES = int(os.getenv("WAITLIST_PAYMENT_MINUTES", "60"))

    # Cancellation policy
    CANCEL_CUTOFF_HOURS = 12

    # Front desk
    CHECKIN_GRACE_MINUTES = int(os.getenv("CHECKIN_GRACE_MINUTES", "30"))

    # Per-court lock wait before answering "court is busy"
    LOCK_TIMEOUT_SECONDS = int(os.getenv("LOCK_TIMEOUT_SECONDS", "10"))

    # Proof of payment uploads
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", os.path.join(BASE_DIR, "uploads"))
    MAX_PROOF_BYTES = int(os.getenv("MAX_PROOF_BYTES", str(5 * 1024 * 1024)))

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = _bool("SMTP_USE_TLS", "true")

    # Basic app settings
    DEBUG = False
