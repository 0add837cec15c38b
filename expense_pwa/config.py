# expense_pwa/config.py
import os
from datetime import timedelta

DEFAULT_DB_PATH = os.path.join(os.path.dirname(__file__), "..", "data", "expense_pwa.db")


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def load_config():
    """Read application settings from the environment."""
    app_env = os.environ.get("APP_ENV", "production")
    cors_origins = os.environ.get("CORS_ORIGINS", "http://localhost:5000")
    return {
        "APP_ENV": app_env,
        "SECRET_KEY": os.environ.get("SECRET_KEY", "dev-key-change-me"),
        "JWT_SECRET_KEY": os.environ.get("JWT_SECRET_KEY", "dev-jwt-key-change-me"),
        "JWT_TOKEN_LOCATION": ["cookies", "headers"],
        "JWT_COOKIE_SECURE": app_env == "production",
        "JWT_COOKIE_SAMESITE": "Lax",
        "JWT_COOKIE_CSRF_PROTECT": _env_bool("JWT_COOKIE_CSRF_PROTECT", False),
        "JWT_ACCESS_TOKEN_EXPIRES": timedelta(hours=_env_float("JWT_EXPIRES_HOURS", 24.0)),
        "DB_PATH": os.environ.get("DB_PATH", DEFAULT_DB_PATH),
        "CORS_ORIGINS": [o.strip() for o in cors_origins.split(",") if o.strip()],
        "MONTHLY_BUDGET": _env_float("MONTHLY_BUDGET", 2000.0),
        "ENFORCE_PREMIUM_TIER": _env_bool("ENFORCE_PREMIUM_TIER", False),
        "CURRENCY": os.environ.get("CURRENCY", "$"),
        "DB_INIT_ERROR": None,
    }
