"""
Environment configuration for the OKR API.

``create_app`` picks a class from ``config`` by name (APP_ENV, default
"development"). Every tunable reads an environment variable of the same
name so deployments never edit this file.

Authorisation knobs:
    ROLE_CACHE_TTL              seconds a user's effective roles stay cached
    EXEC_WHITELIST_RATE_LIMIT   Flask-Limiter string for whitelist management
    OKR_MAX_KR_WEIGHT           upper bound for an objective → KR link weight
"""

import os
import secrets

PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _database_url(fallback):
    # Hosted Postgres still hands out postgres://, which SQLAlchemy 2 rejects.
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url or fallback


class Config:
    DEBUG = False
    TESTING = False

    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "900"))
    JWT_REFRESH_EXPIRES = int(os.getenv("JWT_REFRESH_EXPIRES", "604800"))

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    # Empty means in-process memory:// storage for the limiter.
    REDIS_URL = os.getenv("REDIS_URL", "")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Requests to <slug>.<base> resolve the tenant anonymously.
    TENANT_SUBDOMAIN_BASE = os.getenv("TENANT_SUBDOMAIN_BASE")
    TENANT_SUBDOMAIN_IGNORE = ("www", "api", "app")

    ROLE_CACHE_TTL = int(os.getenv("ROLE_CACHE_TTL", "300"))
    EXEC_WHITELIST_RATE_LIMIT = os.getenv("EXEC_WHITELIST_RATE_LIMIT", "30/minute")
    OKR_MAX_KR_WEIGHT = float(os.getenv("OKR_MAX_KR_WEIGHT", "3.0"))


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        f"sqlite:///{os.path.join(PROJECT_ROOT, 'instance', 'okr_platform_dev.db')}"
    )


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-key-with-at-least-32-bytes"
    RATELIMIT_ENABLED = False


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url(None)
    # No wildcard default; origins must be listed.
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
        "connect_args": {"options": "-c statement_timeout=30000"},
    }

    def __init__(self):
        missing = [
            name for name, value in (
                ("DATABASE_URL", self.SQLALCHEMY_DATABASE_URI),
                ("SECRET_KEY", os.getenv("SECRET_KEY")),
            ) if not value
        ]
        if missing:
            raise RuntimeError(f"Production requires: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
