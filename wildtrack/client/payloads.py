"""Build the two payload shapes a client can upload."""

from __future__ import annotations

import base64
import time
from typing import Any, Iterable

from wildtrack.client.geolocation import PositionFix


def _iso(fix: PositionFix) -> str:
    return fix.timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def build_observation(
    fix: PositionFix | None,
    *,
    category: str,
    animal: str | None = None,
    incident_type: str | None = None,
    poaching_type: str | None = None,
    maintenance_type: str | None = None,
    notes: str | None = None,
    user: str | None = None,
    photo: bytes | None = None,
    photo_filename: str | None = None,
) -> dict[str, Any]:
    """Flat observation record as accepted by ``POST /observations``.

    Empty fields are left out. A photo travels inline as base64 with its
    filename.
    """

    record: dict[str, Any] = {
        "category": category,
        "animal": animal,
        "incident_type": incident_type,
        "poaching_type": poaching_type,
        "maintenance_type": maintenance_type,
        "notes": notes,
        "user": user,
    }
    if fix is not None:
        record.update(
            latitude=fix.latitude,
            longitude=fix.longitude,
            accuracy=fix.accuracy,
            timestamp=_iso(fix),
        )
    if photo:
        record["image"] = base64.b64encode(photo).decode("ascii")
        record["image_filename"] = photo_filename or "photo.jpg"
    return {key: value for key, value in record.items() if value not in (None, "")}


def build_feature(fix: PositionFix, feature_id: str | None = None) -> dict[str, Any]:
    properties: dict[str, Any] = {
        "id": feature_id or f"point_{int(time.time() * 1000)}",
        "timestamp": _iso(fix),
    }
    if fix.accuracy:
        properties["accuracy"] = fix.accuracy
    if fix.altitude:
        properties["altitude"] = fix.altitude
    return {
        "type": "Feature",
        # GeoJSON order: longitude first
        "geometry": {"type": "Point", "coordinates": [fix.longitude, fix.latitude]},
        "properties": properties,
    }


def build_feature_collection(features: Iterable[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


__all__ = ["build_observation", "build_feature", "build_feature_collection"]
