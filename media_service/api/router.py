from fastapi import APIRouter

from media_service.api.endpoints import health, media

router = APIRouter()
router.include_router(health.router, tags=["health"])
router.include_router(media.router, tags=["media"])
