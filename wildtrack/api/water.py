"""Water-quality monitoring endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Query
from sqlmodel import Session

from wildtrack.api.deps import get_db
from wildtrack.services import water

router = APIRouter(prefix="/water-monitoring", tags=["water"])


@router.get("")
def list_water_samples(
    location: str | None = Query(None, max_length=64),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    data = water.list_samples(db, location)
    return {"success": True, "data": data, "count": len(data)}


@router.post("", status_code=201)
def create_water_sample(
    payload: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    record = water.create_sample(db, payload)
    return {"success": True, "message": "Water monitoring data saved successfully", "data": record}


__all__ = ["router"]
