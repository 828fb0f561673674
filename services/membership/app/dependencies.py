"""Common dependencies for the membership service."""

from collections.abc import Generator

from app.core.database import SessionLocal


def get_db() -> Generator:
    """Provide a session for the duration of one request."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = ["get_db"]
