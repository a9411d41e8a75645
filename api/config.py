"""
Environment-aware configuration.
Everything the identity core needs is read here once at startup and
turned into an AuthSettings struct by the app factory.
"""
import os
from dotenv import load_dotenv
from datetime import timedelta

load_dotenv()  # Read .env if present


def _seconds(name: str, default: int) -> timedelta:
    return timedelta(seconds=int(os.getenv(name, str(default))))


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")  # Set a strong key in production
    DEBUG = False
    TESTING = False
    APP_ENV = os.getenv("APP_ENV", "dev")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    # CORS: in dev we usually allow '*', in prod supply a comma-separated list in env
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///sociofeed.db")
    SQLALCHEMY_ECHO = _flag("SQLALCHEMY_ECHO", "false")

    # Token signing; rotating JWT_SECRET invalidates every outstanding token
    JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "sociofeed")
    ACCESS_TOKEN_EXPIRES = _seconds("ACCESS_TOKEN_EXPIRES_SECONDS", 120 * 60)
    REFRESH_TOKEN_EXPIRES = _seconds("REFRESH_TOKEN_EXPIRES_SECONDS", 7 * 24 * 60 * 60)
    ACTIVATION_TOKEN_EXPIRES = _seconds("ACTIVATION_TOKEN_EXPIRES_SECONDS", 60 * 60)
    RESET_TOKEN_EXPIRES = _seconds("RESET_TOKEN_EXPIRES_SECONDS", 60 * 60)
    ROTATE_REFRESH_TOKENS = _flag("ROTATE_REFRESH_TOKENS", "true")
    REVOKE_SESSIONS_ON_RESET = _flag("REVOKE_SESSIONS_ON_RESET", "true")
    # When set, forgot-password answers the same way for unknown/inactive accounts
    CONCEAL_ACCOUNT_EXISTENCE = _flag("CONCEAL_ACCOUNT_EXISTENCE", "false")

    ARGON2_TIME_COST = int(os.getenv("ARGON2_TIME_COST", "3"))
    ARGON2_MEMORY_COST = int(os.getenv("ARGON2_MEMORY_COST", "65536"))
    ARGON2_PARALLELISM = int(os.getenv("ARGON2_PARALLELISM", "4"))

    # Links embedded in activation / reset emails
    BASE_URL = os.getenv("BASE_URL", "http://localhost:5000")
    SMTP_HOST = os.getenv("SMTP_HOST")
    SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME = os.getenv("SMTP_USERNAME")
    SMTP_PASSWORD = os.getenv("SMTP_PASSWORD")
    SMTP_USE_TLS = _flag("SMTP_USE_TLS", "true")
    MAIL_FROM = os.getenv("MAIL_FROM")

    COOKIE_SECURE = False
    COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "Lax")


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    # In dev, propagate exceptions so our error handler has full context
    PROPAGATE_EXCEPTIONS = True


class TestingConfig(BaseConfig):
    TESTING = True
    DATABASE_URL = "sqlite://"
    JWT_SECRET = "test-secret-key-for-testing-only"
    ARGON2_TIME_COST = 1
    ARGON2_MEMORY_COST = 1024
    ARGON2_PARALLELISM = 1
    SMTP_HOST = None


class ProductionConfig(BaseConfig):
    DEBUG = False
    COOKIE_SECURE = True


def get_config(name: str | None):
    """
    Select config class.
    - If name is provided, choose by name.
    - Else choose based on APP_ENV (dev/test/prod).
    """
    env = (name or os.getenv("APP_ENV", "dev")).lower()
    if env in ["prod", "production"]:
        return ProductionConfig
    if env in ["test", "testing"]:
        return TestingConfig
    return DevelopmentConfig
