'''
Runtime configuration for the SportsBook API.

Values are read from the environment (a local .env file is loaded first).
'''
import logging
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field


class Settings(BaseModel):
    """Application settings resolved from environment variables."""

    model_config = ConfigDict(frozen=True)

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    jwt_secret: str
    jwt_expire_days: int = Field(default=30, gt=0)
    reset_token_expire_minutes: int = Field(default=10, gt=0)
    frontend_url: str = "http://localhost:3000"
    avatar_bucket: str = "avatars"
    socket_auth_timeout: float = Field(default=10.0, gt=0)
    log_level: str = "INFO"
    port: int = 5001


def load_settings() -> Settings:
    """
    Build a Settings instance from the process environment.

    Raises:
        ValueError: If JWT_SECRET is not configured.
    """
    load_dotenv()
    secret = os.environ.get("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET not found in environment variables.")

    return Settings(
        supabase_url=os.environ.get("SUPABASE_URL"),
        supabase_key=os.environ.get("SUPABASE_KEY"),
        jwt_secret=secret,
        jwt_expire_days=int(os.environ.get("JWT_EXPIRE_DAYS", "30")),
        reset_token_expire_minutes=int(os.environ.get("RESET_TOKEN_EXPIRE_MINUTES", "10")),
        frontend_url=os.environ.get("FRONTEND_URL", "http://localhost:3000"),
        avatar_bucket=os.environ.get("AVATAR_BUCKET", "avatars"),
        socket_auth_timeout=float(os.environ.get("SOCKET_AUTH_TIMEOUT", "10")),
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        port=int(os.environ.get("PORT", "5001")),
    )


@lru_cache
def get_settings() -> Settings:
    '''Cached settings, usable as a FastAPI dependency.'''
    return load_settings()


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
