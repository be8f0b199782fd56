"""
API routes aggregation.
"""

from fastapi import APIRouter

from .approvals import router as approvals_router
from .permissions import router as permissions_router
from .notifications import router as notifications_router

router = APIRouter()

router.include_router(approvals_router, prefix="/approvals", tags=["approvals"])
router.include_router(permissions_router, prefix="/permisos", tags=["permisos"])
router.include_router(notifications_router, prefix="/notifications", tags=["notifications"])
