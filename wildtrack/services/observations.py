"""Observation ingestion: validation, normalization, persistence and alerts."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

from prometheus_client import Counter
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlmodel import Session, select

from wildtrack.core.errors import ApiError, BadRequest, Forbidden, NotFound, ServiceUnavailable
from wildtrack.db.session import store_available
from wildtrack.models import POACHING_TYPES, Category, Observation
from wildtrack.models.observation import utcnow
from wildtrack.services.notifications import NotificationDispatcher
from wildtrack.services.storage import BlobStore, ImageUpload, decode_inline_image, sanitize_filename
from wildtrack.services.users import is_user_revoked

logger = logging.getLogger(__name__)

# Used both to demand a poaching_type on upload and to trigger alerts
POACHING_KEYWORDS = ("poach", "illegal hunting", "snare", "trap")

# Fields the map view may expose; everything else stays server side
MAP_FIELDS = (
    "id",
    "category",
    "animal",
    "incident_type",
    "poaching_type",
    "maintenance_type",
    "latitude",
    "longitude",
    "timestamp",
)

_REQUIRED_FIELD = {
    Category.SIGHTING: ("animal", "Animal is required for sightings"),
    Category.INCIDENT: ("incident_type", "Incident type is required for incidents"),
    Category.MAINTENANCE: ("maintenance_type", "Maintenance type is required for maintenance"),
}

# Column widths of the observations table
_FIELD_LIMITS = {
    "animal": 128,
    "incident_type": 128,
    "poaching_type": 64,
    "maintenance_type": 128,
    "user": 255,
}

OBSERVATIONS_CREATED = Counter(
    "wildtrack_observations_created_total",
    "Observations persisted.",
    ["category"],
)
OBSERVATIONS_REJECTED = Counter(
    "wildtrack_observations_rejected_total",
    "Observation submissions rejected before persistence.",
    ["kind"],
)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def matches_poaching_keyword(incident_type: str | None) -> bool:
    lowered = (incident_type or "").lower()
    return any(keyword in lowered for keyword in POACHING_KEYWORDS)


def is_poaching_incident(observation: Observation) -> bool:
    return observation.category == Category.INCIDENT.value and matches_poaching_keyword(
        observation.incident_type
    )


def _coordinate(value: Any, name: str, limit: float) -> float:
    if isinstance(value, bool):
        raise BadRequest(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise BadRequest(f"{name} must be a number")
    if math.isnan(number) or not -limit <= number <= limit:
        raise BadRequest(f"{name} must be between -{limit:g} and {limit:g}")
    return number


def _parse_timestamp(value: Any) -> datetime:
    """Parse a client timestamp into naive UTC; epoch milliseconds also accepted."""

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            raise BadRequest("timestamp must be an ISO-8601 date-time")
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        raise BadRequest("timestamp must be an ISO-8601 date-time")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def build_observation(payload: Mapping[str, Any]) -> Observation:
    """Validate a raw submission and return the normalized, unsaved record."""

    raw_category = _text(payload.get("category"))
    if not raw_category:
        raise BadRequest("Category is required")
    try:
        category = Category(raw_category)
    except ValueError:
        allowed = ", ".join(c.value for c in Category)
        raise BadRequest(f"Invalid category. Must be one of: {allowed}")

    field, message = _REQUIRED_FIELD[category]
    value = _text(payload.get(field))
    if not value:
        raise BadRequest(message)

    observation = Observation(category=category.value)
    setattr(observation, field, value)

    if category is Category.INCIDENT and matches_poaching_keyword(value):
        poaching_type = _text(payload.get("poaching_type"))
        if poaching_type not in POACHING_TYPES:
            raise BadRequest(
                "Poaching type is required for poaching incidents. Must be one of: "
                + ", ".join(POACHING_TYPES)
            )
        observation.poaching_type = poaching_type

    latitude, longitude = payload.get("latitude"), payload.get("longitude")
    if _text(latitude) is not None and _text(longitude) is not None:
        observation.latitude = _coordinate(latitude, "latitude", 90)
        observation.longitude = _coordinate(longitude, "longitude", 180)

    raw_timestamp = payload.get("timestamp")
    observation.timestamp = _parse_timestamp(raw_timestamp) if _text(raw_timestamp) else utcnow()

    observation.user = _text(payload.get("user"))
    observation.notes = _text(payload.get("notes"))

    for name, limit in _FIELD_LIMITS.items():
        text = getattr(observation, name)
        if text is not None and len(text) > limit:
            raise BadRequest(f"{name} must be at most {limit} characters")
    return observation


class ObservationService:
    def __init__(self, session: Session, blob_store: BlobStore, notifier: NotificationDispatcher) -> None:
        self.session = session
        self.blob_store = blob_store
        self.notifier = notifier

    async def create(self, payload: Mapping[str, Any], image: ImageUpload | None = None) -> dict[str, Any]:
        try:
            return await self._create(payload, image)
        except ApiError as exc:
            OBSERVATIONS_REJECTED.labels(kind=exc.kind).inc()
            raise

    async def _create(self, payload: Mapping[str, Any], image: ImageUpload | None) -> dict[str, Any]:
        self._require_store()

        submitter = _text(payload.get("user"))
        if is_user_revoked(self.session, submitter):
            logger.warning("Blocked submission from revoked user %s", submitter)
            raise Forbidden("Your account has been suspended. Please contact an administrator.")

        observation = build_observation(payload)

        upload = image or self._inline_image(payload)
        if upload is not None:
            self._attach_image(observation, upload)

        stored_image = observation.image_path
        self.session.add(observation)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.error("Failed to store observation", exc_info=True)
            if stored_image:
                self.blob_store.delete(stored_image)
            if isinstance(exc, OperationalError):
                raise ServiceUnavailable("Database not available", str(exc)) from exc
            raise BadRequest("Observation could not be stored", str(exc)) from exc
        self.session.refresh(observation)

        record = observation.to_record()
        OBSERVATIONS_CREATED.labels(category=observation.category).inc()
        logger.info("Stored %s observation %s", observation.category, observation.id)

        if is_poaching_incident(observation):
            # Awaited so the alert finishes before a serverless host tears down
            try:
                summary = await self.notifier.notify_poaching_incident(record)
            except Exception:
                logger.error("Poaching notification raised for %s", observation.id, exc_info=True)
            else:
                logger.info("Poaching notification summary for %s: %s", observation.id, summary)
        return record

    def list_for_map(self) -> list[dict[str, Any]]:
        self._require_store()
        rows = self.session.exec(
            select(Observation)
            .where(Observation.latitude.is_not(None))
            .where(Observation.longitude.is_not(None))
            .order_by(Observation.timestamp.desc())
        ).all()
        projected = []
        for row in rows:
            if not row.has_location:
                continue
            record = row.to_record()
            projected.append({key: record[key] for key in MAP_FIELDS if key in record})
        return projected

    def image_for(self, observation_id: str) -> tuple[Path, str]:
        self._require_store()
        observation = self.session.get(Observation, observation_id)
        if observation is None:
            raise NotFound("Observation not found")
        if not observation.image_path or not self.blob_store.exists(observation.image_path):
            raise NotFound("Observation has no image")
        return self.blob_store.resolve(observation.image_path), observation.image_filename or "image"

    def _require_store(self) -> None:
        if not store_available(self.session):
            raise ServiceUnavailable(
                "Database not available",
                "Document store not reachable - observation storage disabled",
            )

    def _inline_image(self, payload: Mapping[str, Any]) -> ImageUpload | None:
        encoded = payload.get("image")
        if not isinstance(encoded, str) or not encoded.strip():
            return None
        try:
            return decode_inline_image(encoded.strip(), _text(payload.get("image_filename")))
        except ValueError as exc:
            logger.warning("Ignoring inline image: %s", exc)
            return None

    def _attach_image(self, observation: Observation, upload: ImageUpload) -> None:
        try:
            name = self.blob_store.object_name("observations", upload.filename)
            observation.image_path = self.blob_store.put(name, upload.content)
            observation.image_filename = sanitize_filename(upload.filename)
        except Exception:
            # Image storage never fails the submission
            logger.error("Image upload failed; storing observation without image", exc_info=True)
            observation.image_path = None
            observation.image_filename = None


__all__ = [
    "POACHING_KEYWORDS",
    "MAP_FIELDS",
    "ObservationService",
    "build_observation",
    "is_poaching_incident",
    "matches_poaching_keyword",
]
