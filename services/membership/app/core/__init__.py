"""Core utilities for the membership service."""

from .config import settings
from .database import Base, SessionLocal, engine
from .locks import membership_locks
from .security import get_current_user, get_current_user_id, require_admin

__all__ = [
    "settings",
    "Base",
    "SessionLocal",
    "engine",
    "membership_locks",
    "get_current_user",
    "get_current_user_id",
    "require_admin",
]
