"""Version 1 API routes for the membership service."""

from fastapi import APIRouter

from .admin_routes import router as admin_router
from .fee_routes import router as fee_router
from .membership_routes import router as membership_router
from .payment_routes import router as payment_router

router = APIRouter()
router.include_router(membership_router)
router.include_router(payment_router)
router.include_router(admin_router)
router.include_router(fee_router)

__all__ = ["router"]
