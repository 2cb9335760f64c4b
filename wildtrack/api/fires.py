"""Fire feed proxy and the scheduled fire check."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from wildtrack.api.deps import get_firms_client, get_notifier
from wildtrack.core.security import require_cron_secret
from wildtrack.services.fires import FirmsClient, fetch_fire_collection, run_fire_check
from wildtrack.services.notifications import NotificationDispatcher

router = APIRouter(prefix="/fires", tags=["fires"])
cron_router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(require_cron_secret)])


@router.get("")
async def list_fires(
    days: int | None = Query(None, description="Day window, clamped to 1-5"),
    country: str = Query("USA", max_length=8),
    client: FirmsClient = Depends(get_firms_client),
) -> dict[str, Any]:
    """VIIRS and MODIS detections merged into one FeatureCollection."""

    return await fetch_fire_collection(client, country, days)


@cron_router.get("/fire-check")
async def fire_check(
    client: FirmsClient = Depends(get_firms_client),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict[str, Any]:
    return await run_fire_check(client, notifier)


__all__ = ["router", "cron_router"]
