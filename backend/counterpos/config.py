# backend/counterpos/config.py
from __future__ import annotations
import os


def _csv_env(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/counterpos.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///counterpos.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Register front end origins (Vite dev server and preview by default)
    CORS_ORIGINS = _csv_env("CORS_ORIGINS") or [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    ]

    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "Rs")
    CURRENCY_CODE = os.environ.get("CURRENCY_CODE", "PKR")

    # Staff sessions are revoked after this much inactivity
    SESSION_IDLE_MINUTES = int(os.environ.get("SESSION_IDLE_MINUTES", str(12 * 60)))

    # bcrypt cost factor for staff PINs
    PIN_HASH_ROUNDS = int(os.environ.get("PIN_HASH_ROUNDS", "12"))


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    PIN_HASH_ROUNDS = 4
