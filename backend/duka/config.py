# backend/duka/config.py
from __future__ import annotations
import os


def _csv_env(name: str, default: str) -> set[str]:
    raw = os.environ.get(name, default)
    return {item.strip() for item in raw.split(",") if item.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/duka.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///duka.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ORIGINS = _csv_env(
        "CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
    )

    # Serverless functions (payments, transaction email)
    FUNCTIONS_BASE_URL = os.environ.get("FUNCTIONS_BASE_URL", "http://localhost:54321/functions/v1")
    FUNCTIONS_API_KEY = os.environ.get("FUNCTIONS_API_KEY", "")
    FUNCTIONS_TIMEOUT_SECONDS = float(os.environ.get("FUNCTIONS_TIMEOUT_SECONDS", "15"))

    SEND_TRANSACTION_EMAILS = os.environ.get("SEND_TRANSACTION_EMAILS", "false").lower() == "true"
