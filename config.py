# config.py

import os
from sqlalchemy.pool import QueuePool


def _env_flag(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-dev-key")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SESSION_COOKIE_SECURE = True
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 280,
        "pool_size": 5,
        "max_overflow": 10,
        "poolclass": QueuePool
    }

    # Puzzle generation
    TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
    ORDER_PUZZLE_SALT = os.getenv("ORDER_PUZZLE_SALT", "dailyhistory-order")
    CLASSIC_PUZZLE_SALT = os.getenv("CLASSIC_PUZZLE_SALT", "dailyhistory-classic")
    PUZZLE_JUDGE_ENABLED = _env_flag("PUZZLE_JUDGE_ENABLED")
    COMPOSITION_MAX_ATTEMPTS = int(os.getenv("COMPOSITION_MAX_ATTEMPTS", "3"))
    ADMIN_GENERATE_TOKEN = os.getenv("ADMIN_GENERATE_TOKEN", "")
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "1")

    @staticmethod
    def init_app(app):
        pass

class DevelopmentConfig(Config):
    DEBUG = True
    SESSION_COOKIE_SECURE = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DEV_DATABASE_URL",
        "sqlite:///instance/local.db"  # keep relative and portable
    )

class ProductionConfig(Config):
    DEBUG = False

    @classmethod
    def get_database_uri(cls):
        uri = os.getenv("DATABASE_URL", "")
        # psycopg v3 driver
        if uri.startswith("postgres://"):
            uri = uri.replace("postgres://", "postgresql+psycopg://", 1)
        elif uri.startswith("postgresql://"):
            uri = uri.replace("postgresql://", "postgresql+psycopg://", 1)
        if uri and "sslmode" not in uri:
            uri += "?sslmode=require"
        return uri

    SQLALCHEMY_DATABASE_URI = get_database_uri.__func__(None)

class TestingConfig(Config):
    TESTING = True
    SESSION_COOKIE_SECURE = False
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TIME_ZONE = "UTC"
    ORDER_PUZZLE_SALT = "test-order"
    CLASSIC_PUZZLE_SALT = "test-classic"
    PUZZLE_JUDGE_ENABLED = False
    ADMIN_GENERATE_TOKEN = "test-admin-token"
    SCHEDULER_ENABLED = False

config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig
}
