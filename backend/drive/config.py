from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parents[2]


def env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    cleaned = raw.strip()
    return cleaned or default


def env_origins() -> list[str]:
    raw_origins = os.getenv("FRONTEND_ORIGINS")
    if raw_origins:
        origins = [origin.strip() for origin in raw_origins.split(",") if origin.strip()]
        if origins:
            return origins
    return ["http://localhost:3000", "http://127.0.0.1:3000"]


class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'drive.db'}")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    SECRET_KEY = env_str("SECRET_KEY", "dev-secret-key-change-me-at-least-32-bytes")
    JWT_SECRET_KEY = env_str("JWT_SECRET_KEY", "dev-jwt-secret-key-change-me-at-least-32-bytes")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(minutes=env_int("ACCESS_TOKEN_EXPIRES_MINUTES", 15))

    FRONTEND_ORIGINS = env_origins()

    STORAGE_ROOT = os.getenv("STORAGE_ROOT", str(BASE_DIR / "storage"))
    BLOB_PUBLIC_BASE_URL = env_str("BLOB_PUBLIC_BASE_URL", "http://127.0.0.1:5000")
    BLOB_URL_TTL_SECONDS = max(1, env_int("BLOB_URL_TTL_SECONDS", 3600))

    MAX_UPLOAD_SIZE_BYTES = env_int("MAX_UPLOAD_SIZE_BYTES", 25 * 1024 * 1024)
    MAX_CONTENT_LENGTH = env_int("MAX_CONTENT_LENGTH", 1024 * 1024 * 1024)

    # secrets.token_urlsafe byte count; values below 16 are raised to 16.
    SHARE_TOKEN_BYTES = env_int("SHARE_TOKEN_BYTES", 24)
    SHARE_MAX_EXPIRY_DAYS = env_int("SHARE_MAX_EXPIRY_DAYS", 3650)


class TestingConfig(Config):
    TESTING = True
