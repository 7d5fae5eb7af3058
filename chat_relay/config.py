"""
Application configuration.
Reads environment variables (optionally from a .env file) once at startup.
"""
import os
import enum
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///chatbot.db"
DEFAULT_MODEL_NAME = "gemini-2.0-flash"


class SessionReusePolicy(str, enum.Enum):
    """What to do when a chat request arrives without a resolvable chatId."""

    # Continue the user's most recently updated session
    REUSE_LATEST = "reuse_latest"
    # Always open a fresh session titled from the message
    ALWAYS_NEW = "always_new"


def _normalize_database_url(url: str) -> str:
    # Render/Neon hand out 'postgres://' which SQLAlchemy 1.4+ rejects
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Immutable process configuration injected into the services."""

    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_MODEL_NAME
    database_url: str = DEFAULT_DATABASE_URL
    port: int = 5000
    context_window: int = 10
    session_reuse_policy: SessionReusePolicy = SessionReusePolicy.REUSE_LATEST
    ping_on_startup: bool = True

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_MODEL_NAME),
            database_url=_normalize_database_url(
                os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
            ),
            port=int(os.getenv("PORT", "5000")),
            context_window=int(os.getenv("CONTEXT_WINDOW", "10")),
            session_reuse_policy=SessionReusePolicy(
                os.getenv("SESSION_REUSE_POLICY", SessionReusePolicy.REUSE_LATEST.value)
            ),
            ping_on_startup=_env_flag("PING_ON_STARTUP", True),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
