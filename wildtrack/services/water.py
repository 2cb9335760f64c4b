"""Water-quality monitoring samples."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlmodel import Session, select

from wildtrack.core.config import settings
from wildtrack.core.errors import BadRequest, Forbidden, ServiceUnavailable
from wildtrack.db.session import store_available
from wildtrack.models import WATER_PARAMETERS, WaterSample
from wildtrack.services.users import is_user_revoked

logger = logging.getLogger(__name__)


def _present(value: Any) -> bool:
    return value is not None and value != ""


def list_samples(session: Session, location: str | None = None) -> list[dict[str, Any]]:
    if not store_available(session):
        raise ServiceUnavailable("Database not available", "water monitoring data unavailable")
    stmt = select(WaterSample)
    if location:
        stmt = stmt.where(WaterSample.location == location)
    rows = session.exec(stmt.order_by(WaterSample.date.asc())).all()
    return [row.to_record() for row in rows]


def create_sample(session: Session, payload: Mapping[str, Any]) -> dict[str, Any]:
    if not store_available(session):
        raise ServiceUnavailable("Database not available", "water monitoring storage disabled")

    user = payload.get("user")
    if _present(user) and is_user_revoked(session, str(user)):
        logger.warning("Blocked water sample from revoked user %s", user)
        raise Forbidden("Your account has been suspended. Please contact an administrator.")

    location = payload.get("location")
    if not _present(location):
        raise BadRequest("Location is required")
    if not _present(payload.get("date")):
        raise BadRequest("Date is required")
    valid = settings.water_location_keys
    if location not in valid:
        raise BadRequest(f"Invalid location. Must be one of: {', '.join(valid)}")

    sample = WaterSample(
        location=str(location),
        location_name=payload.get("location_name"),
        date=str(payload["date"]),
        user=str(user) if _present(user) else None,
        parameters={key: payload[key] for key in WATER_PARAMETERS if _present(payload.get(key))},
    )
    latitude, longitude = payload.get("latitude"), payload.get("longitude")
    if _present(latitude) and _present(longitude):
        try:
            sample.latitude = float(latitude)
            sample.longitude = float(longitude)
        except (TypeError, ValueError):
            raise BadRequest("latitude and longitude must be numbers")

    session.add(sample)
    session.commit()
    session.refresh(sample)
    logger.info("Stored water sample %s for %s", sample.id, sample.location)
    return sample.to_record()


__all__ = ["list_samples", "create_sample"]
