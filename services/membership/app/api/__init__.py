"""API routers for the membership service."""

from .v1 import router as v1_router

__all__ = ["v1_router"]
