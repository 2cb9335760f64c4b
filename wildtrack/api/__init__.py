"""API router definitions."""

from fastapi import APIRouter, Depends

from wildtrack.core.security import rate_limit, require_api_key

from .admin import router as admin_router
from .auth import router as auth_router
from .fires import cron_router, router as fires_router
from .map_layers import router as map_router
from .observations import router as observations_router
from .routes import health_router
from .water import router as water_router

general_limit = Depends(rate_limit("api_limiter", "Too many requests from this IP, please try again later."))
auth_limit = Depends(rate_limit("auth_limiter", "Too many authentication attempts, please try again later."))
api_key = Depends(require_api_key)

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(observations_router, dependencies=[general_limit, api_key])
api_router.include_router(fires_router, dependencies=[general_limit, api_key])
api_router.include_router(water_router, dependencies=[general_limit, api_key])
api_router.include_router(map_router, dependencies=[general_limit, api_key])
api_router.include_router(auth_router, dependencies=[auth_limit])
api_router.include_router(cron_router, dependencies=[general_limit])
api_router.include_router(admin_router, dependencies=[general_limit])

__all__ = ["api_router"]
