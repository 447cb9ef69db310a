# backend/app/config.py
from __future__ import annotations
import os


def _split_origins(raw: str) -> set[str]:
    return {origin.strip() for origin in raw.split(",") if origin.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/suaza.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # Postgres in production
        "sqlite:///suaza.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    # Admin frontend (Vite dev server and preview build)
    CORS_ORIGINS = _split_origins(
        os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        )
    )

    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "24"))

    # bcrypt cost for accounts created through the API
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
