"""Liveness check."""

from fastapi import APIRouter

from wildtrack.models.observation import isoformat_utc, utcnow

health_router = APIRouter(tags=["system"])


@health_router.get("/health", summary="Service health check")
async def healthcheck() -> dict[str, str]:
    """Heartbeat with the server clock, for uptime monitors."""

    return {"status": "OK", "timestamp": isoformat_utc(utcnow())}
