import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # Symmetric key used to sign session tokens. Every downstream service that
    # verifies sessions must hold the same value.
    SESSION_SIGNING_KEY = os.getenv("SESSION_SIGNING_KEY") or SECRET_KEY
    SESSION_ALGORITHM = "HS256"

    # SQLite database file stored next to this file as portal_auth.db
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "portal_auth.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for any ledger/store call (lock waits, busy DB, pool checkout)
    LEDGER_TIMEOUT_SECONDS = _env_int("LEDGER_TIMEOUT_SECONDS", 5)
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_timeout": LEDGER_TIMEOUT_SECONDS}

    # Cookie name for the session token
    AUTH_COOKIE_NAME = "portal_session"

    # 7 days session lifetime
    SESSION_MAX_AGE_SECONDS = _env_int("SESSION_MAX_AGE_SECONDS", 7 * 24 * 60 * 60)

    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

    # Brute-force protection
    LOCKOUT_THRESHOLD = _env_int("LOCKOUT_THRESHOLD", 5)
    LOCKOUT_BASE_SECONDS = _env_int("LOCKOUT_BASE_SECONDS", 5 * 60)
    LOCKOUT_MAX_SECONDS = _env_int("LOCKOUT_MAX_SECONDS", 24 * 60 * 60)
    LOCKOUT_WINDOW_SECONDS = _env_int("LOCKOUT_WINDOW_SECONDS", 7 * 24 * 60 * 60)
    LOCKOUT_HISTORY_LIMIT = 500

    # Simple IP rate limit for login endpoint
    LOGIN_RATE_WINDOW_SECONDS = 60      # window size
    LOGIN_RATE_MAX_REQUESTS = 30        # max login requests per IP per window

    # Password policy
    PASSWORD_MIN_LEN = 12
    PASSWORD_MAX_LEN = 72
    PASSWORD_REQUIRE_UPPER = True
    PASSWORD_REQUIRE_LOWER = True
    PASSWORD_REQUIRE_DIGIT = True
    PASSWORD_REQUIRE_SYMBOL = True
    BCRYPT_ROUNDS = _env_int("BCRYPT_ROUNDS", 12)

    # Length of secrets generated during credential provisioning
    GENERATED_SECRET_LENGTH = _env_int("GENERATED_SECRET_LENGTH", 16)

    # Login page linked from credential emails
    PORTAL_LOGIN_URL = os.getenv("PORTAL_LOGIN_URL", "http://localhost:3000/auth/login")

    # Email (SMTP)
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL")
    SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
    SMTP_TIMEOUT_SECONDS = 10

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_JSON = os.getenv("LOG_JSON", "true").lower() == "true"

    # Basic app settings
    DEBUG = False
