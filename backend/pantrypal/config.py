# backend/pantrypal/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pantrypal.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pantrypal.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Upper bound on how long a writer waits for a row/database lock
    STORAGE_LOCK_TIMEOUT_SECONDS = float(os.environ.get("STORAGE_LOCK_TIMEOUT_SECONDS", "5"))
    STORAGE_RETRY_ATTEMPTS = int(os.environ.get("STORAGE_RETRY_ATTEMPTS", "3"))
    STORAGE_RETRY_BACKOFF = float(os.environ.get("STORAGE_RETRY_BACKOFF", "0.1"))

    # Tenant context is normally set on flask.g by the auth layer.
    # Only an auth proxy in front of this service may be trusted to send it as a header.
    TRUST_TENANT_HEADER = _env_bool("TRUST_TENANT_HEADER", False)
    TENANT_HEADER = os.environ.get("TENANT_HEADER", "X-Org-Id")
    USER_HEADER = os.environ.get("USER_HEADER", "X-User-Id")

    DEFAULT_MIN_STOCK_LEVEL = int(os.environ.get("DEFAULT_MIN_STOCK_LEVEL", "5"))
    NEAR_EXPIRY_DEFAULT_DAYS = int(os.environ.get("NEAR_EXPIRY_DEFAULT_DAYS", "7"))
    BILL_NUMBER_PREFIX = os.environ.get("BILL_NUMBER_PREFIX", "INV")


def engine_options_for(uri: str, lock_timeout_seconds: float) -> dict:
    """
    SQLAlchemy engine options that keep lock waits bounded.

    A timed-out wait surfaces as OperationalError, which the service layer
    retries and finally reports as TransientStorageError.
    """
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": lock_timeout_seconds}}
    if uri.startswith("postgresql"):
        timeout_ms = int(lock_timeout_seconds * 1000)
        return {
            "pool_pre_ping": True,
            "pool_timeout": lock_timeout_seconds,
            "connect_args": {
                "options": (
                    f"-c lock_timeout={timeout_ms} "
                    f"-c idle_in_transaction_session_timeout={timeout_ms * 2}"
                ),
            },
        }
    return {"pool_pre_ping": True}
