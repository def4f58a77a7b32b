"""Master API router — includes all sub-routers."""

from fastapi import APIRouter

from .routes.carousel import router as carousel_router
from .routes.cms import router as cms_router
from .routes.grid import router as grid_router
from .routes.screens import router as screens_router
from .routes.upload import router as upload_router

# The admin UI and the mobile app address these paths directly, so no version prefix
api_router = APIRouter()

api_router.include_router(cms_router)
api_router.include_router(grid_router)
api_router.include_router(carousel_router)
api_router.include_router(screens_router)
api_router.include_router(upload_router)
