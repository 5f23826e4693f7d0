# backend/storeflow/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/storeflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///storeflow.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Bearer tokens expire after this many hours
    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))

    CORS_ORIGINS = _split_csv(
        os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:9002,http://127.0.0.1:9002,http://localhost:3000",
        )
    )

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # bcrypt cost factor (tests lower it)
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
