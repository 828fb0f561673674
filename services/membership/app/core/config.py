"""Configuration management for the membership service."""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    PROJECT_NAME: str = os.getenv("MEMBERSHIP_PROJECT_NAME", "Membership Service")
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./membership.db")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ADMIN_ROLE: str = os.getenv("ADMIN_ROLE", "admin")
    NOTIFICATION_SERVICE_URL: str = os.getenv("NOTIFICATION_SERVICE_URL", "")
    NOTIFICATION_SERVICE_TIMEOUT: float = float(
        os.getenv("NOTIFICATION_SERVICE_TIMEOUT", "10")
    )
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


__all__ = ["settings", "Settings", "get_settings"]
