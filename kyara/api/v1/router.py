from __future__ import annotations

from fastapi import APIRouter

from kyara.api.v1.routes.health import router as health_router
from kyara.api.v1.routes.selection import router as selection_router
from kyara.api.v1.routes.session import router as session_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(session_router, tags=["session"])
router.include_router(selection_router, tags=["selection"])
