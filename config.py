"""Configuration for Arena-Core."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_origins(value: str) -> list[str]:
    if not value:
        return ["*"]
    return [x.strip() for x in value.split(",") if x.strip()]


# Hosted backend (Supabase). When both are set the hosted gateway is used.
SUPABASE_URL = os.getenv("SUPABASE_URL", "")
SUPABASE_KEY = os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY", "")
SUPABASE_SCHEMA = os.getenv("SUPABASE_SCHEMA", "public")

# Local SQL backend (used when Supabase is not configured)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'arena.db'}",
)

# Session tokens (SQL backend issues its own JWTs)
JWT_SECRET = os.getenv("JWT_SECRET", "change-me-in-production-use-long-random-string")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_MINUTES = int(os.getenv("ACCESS_TOKEN_MINUTES", "60"))
REFRESH_TOKEN_DAYS = int(os.getenv("REFRESH_TOKEN_DAYS", "30"))

# Persisted session state: cookies are namespaced under this key
SESSION_STORAGE_KEY = os.getenv("SESSION_STORAGE_KEY", "sb-auth")
DETECT_SESSION_IN_URL = _env_bool("DETECT_SESSION_IN_URL", True)
AUTH_REFRESH_MARGIN_SECONDS = int(os.getenv("AUTH_REFRESH_MARGIN_SECONDS", "60"))
COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)

# Bootstrap: first sign-in with these credentials creates an admin account
INITIAL_ADMIN_EMAIL = os.getenv("INITIAL_ADMIN_EMAIL", "admin@example.com")
INITIAL_ADMIN_PASSWORD = os.getenv("INITIAL_ADMIN_PASSWORD", "")

# Listings
NEWS_PAGE_SIZE = int(os.getenv("NEWS_PAGE_SIZE", "9"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = _parse_origins(os.getenv("CORS_ORIGINS", ""))
