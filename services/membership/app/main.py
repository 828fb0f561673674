"""Entry point for the Membership service."""

import logging

from fastapi import FastAPI

from app.api import v1_router
from app.core.config import settings
from app.core.database import Base, engine
from app.core.error_handlers import register_exception_handlers
from app import models  # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.PROJECT_NAME)

register_exception_handlers(app)

app.include_router(
    v1_router,
    prefix="/api/gym/v1/membership",
)


__all__ = ["app"]
