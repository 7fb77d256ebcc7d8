from fastapi import APIRouter

from app.api.endpoints.health import router as health_router
from app.api.endpoints.auth import router as auth_router
from app.api.endpoints.properties import router as properties_router


router = APIRouter(prefix="/api")
router.include_router(health_router, tags=["health"])
router.include_router(auth_router, tags=["auth"])
router.include_router(properties_router, tags=["properties"])
