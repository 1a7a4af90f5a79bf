# backend/marketplace/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///marketplace.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # bcrypt cost factor; tests lower it to keep hashing fast
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # One-time passcode policy for account verification
    OTP_LENGTH = int(os.environ.get("OTP_LENGTH", "6"))
    OTP_TTL_MINUTES = int(os.environ.get("OTP_TTL_MINUTES", "10"))

    # "fake" keeps messages in memory, "smtp" delivers through MAIL_SERVER
    MAIL_BACKEND = os.environ.get("MAIL_BACKEND", "fake")
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = int(os.environ.get("MAIL_PORT", "587"))
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_SENDER = os.environ.get("MAIL_SENDER", "Suitcase Marketplace <no-reply@marketplace.local>")

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Reported by the admin system endpoint
    ENV_NAME = os.environ.get("APP_ENV", "development")
