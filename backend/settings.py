"""Environment-driven configuration for the interview prep backend."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv


BACKEND_DIR = Path(__file__).resolve().parent
DEFAULT_DB_PATH = BACKEND_DIR / "interview_prep.db"
DEFAULT_PROVIDER = "openai"
DEFAULT_AI_TIMEOUT = 30.0

# Load env vars from project .env and user home .env if present.
load_dotenv(BACKEND_DIR / ".env")
load_dotenv(Path.home() / ".env")


def _clean(raw: str) -> str:
    return raw.strip().strip('"').strip("'")


def _env(name: str, default: str = "") -> str:
    return _clean(os.environ.get(name, default))


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}.")


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}.")


@dataclass
class Settings:
    ai_provider: str = DEFAULT_PROVIDER
    ai_api_key: str = ""
    ai_model: str = ""
    ai_timeout: float = DEFAULT_AI_TIMEOUT
    ai_rate_limit: int = 20
    ai_rate_window_seconds: int = 60
    database_path: str = str(DEFAULT_DB_PATH)
    secret_key: str = "dev-secret-change-me"
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"
    trusted_proxy_count: int = 0


def load_settings() -> Settings:
    """Read settings from the process environment (after .env loading)."""
    origins = _env("CORS_ORIGINS", "http://localhost:3000")
    return Settings(
        ai_provider=(_env("AI_PROVIDER") or DEFAULT_PROVIDER).lower(),
        ai_api_key=_env("AI_API_KEY"),
        ai_model=_env("AI_MODEL"),
        ai_timeout=_env_float("AI_TIMEOUT_SECONDS", DEFAULT_AI_TIMEOUT),
        ai_rate_limit=_env_int("AI_RATE_LIMIT", 20),
        ai_rate_window_seconds=_env_int("AI_RATE_WINDOW_SECONDS", 60),
        database_path=_env("DATABASE_PATH") or str(DEFAULT_DB_PATH),
        secret_key=_env("SECRET_KEY") or "dev-secret-change-me",
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        trusted_proxy_count=_env_int("TRUSTED_PROXY_COUNT", 0),
    )
