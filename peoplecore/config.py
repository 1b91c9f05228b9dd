"""
PeopleCore HR Assistant
Environment configuration.

``create_app(name)`` instantiates ``config[name]``; only
``ProductionConfig`` does work in ``__init__`` (it refuses to boot with a
missing database URL or signing secret).

Every knob reads an environment variable of the same name.
"""

import os
import secrets

PROJECT_ROOT = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

SQLITE_DEV_URL = f"sqlite:///{os.path.join(PROJECT_ROOT, 'instance', 'peoplecore_dev.db')}"
SQLITE_MEMORY_URL = "sqlite:///:memory:"

# Per-process key so dev tokens die with the server
_EPHEMERAL_SECRET = secrets.token_hex(32)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _database_url(name: str = "DATABASE_URL") -> str:
    url = os.getenv(name, "")
    # Hosted Postgres still hands out the pre-SQLAlchemy-1.4 scheme
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class Config:
    DEBUG = False
    TESTING = False
    SECRET_KEY = os.getenv("SECRET_KEY", _EPHEMERAL_SECRET)

    # ── Store ─────────────────────────────────────────────────────────────
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True, "pool_recycle": 300}

    # ── Identity boundary ─────────────────────────────────────────────────
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
    JWT_ACCESS_EXPIRES = int(os.getenv("JWT_ACCESS_EXPIRES", "7200"))
    JWT_LEEWAY_SECONDS = int(os.getenv("JWT_LEEWAY_SECONDS", "10"))

    # ── HTTP surface ──────────────────────────────────────────────────────
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    CHAT_RATE_LIMIT = os.getenv("CHAT_RATE_LIMIT", "30/minute")

    # ── Language model ────────────────────────────────────────────────────
    LLM_DEFAULT_CHAT_MODEL = os.getenv("LLM_DEFAULT_CHAT_MODEL", "moonshotai/kimi-k2-instruct-0905")
    LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
    LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.1"))
    # Answer from the keyword stub when no provider key is configured
    LLM_ALLOW_STUB_FALLBACK = _env_bool("LLM_ALLOW_STUB_FALLBACK", True)

    # ── Chat pipeline ─────────────────────────────────────────────────────
    CHAT_HISTORY_WINDOW = int(os.getenv("CHAT_HISTORY_WINDOW", "10"))
    SQL_STATEMENT_TIMEOUT_SECONDS = float(os.getenv("SQL_STATEMENT_TIMEOUT_SECONDS", "30"))
    SQL_MAX_ROWS = int(os.getenv("SQL_MAX_ROWS", "500"))
    SUMMARY_SAMPLE_ROWS = int(os.getenv("SUMMARY_SAMPLE_ROWS", "20"))
    SQL_AUDIT_LOG_FILE = os.getenv("SQL_AUDIT_LOG_FILE", os.path.join(PROJECT_ROOT, "logs", "sql-audit.log"))


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url() or SQLITE_DEV_URL


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = _database_url("TEST_DATABASE_URL") or SQLITE_MEMORY_URL
    JWT_SECRET_KEY = "testing-jwt-secret"
    RATELIMIT_ENABLED = False
    LLM_DEFAULT_CHAT_MODEL = "local-stub"
    SQL_AUDIT_LOG_FILE = ""


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url() or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    LLM_ALLOW_STUB_FALLBACK = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_recycle": 300,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "10")),
        "pool_timeout": 20,
    }

    def __init__(self):
        missing = [
            name for name, present in (
                ("DATABASE_URL", bool(self.SQLALCHEMY_DATABASE_URI)),
                ("SECRET_KEY", bool(os.getenv("SECRET_KEY"))),
                ("JWT_SECRET_KEY", bool(os.getenv("JWT_SECRET_KEY"))),
            ) if not present
        ]
        if missing:
            raise RuntimeError(f"Production requires environment variables: {', '.join(missing)}")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
