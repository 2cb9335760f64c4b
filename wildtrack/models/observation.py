"""Observation record model."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from sqlmodel import Field, SQLModel


class Category(str, Enum):
    SIGHTING = "Sighting"
    INCIDENT = "Incident"
    MAINTENANCE = "Maintenance"


POACHING_TYPES = ("Carcass", "Snare", "Poacher", "Fishing net/equipment")


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def utcnow() -> datetime:
    """Naive UTC now, the form every timestamp column stores."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat_utc(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds") + "Z"


class Observation(SQLModel, table=True):
    __tablename__ = "observations"

    id: str = Field(default_factory=new_document_id, primary_key=True, max_length=32)
    category: str = Field(max_length=32, index=True)
    animal: Optional[str] = Field(default=None, max_length=128)
    incident_type: Optional[str] = Field(default=None, max_length=128)
    poaching_type: Optional[str] = Field(default=None, max_length=64)
    maintenance_type: Optional[str] = Field(default=None, max_length=128)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timestamp: datetime = Field(default_factory=utcnow, index=True)
    user: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None
    image_path: Optional[str] = Field(default=None, max_length=512)
    image_filename: Optional[str] = Field(default=None, max_length=255)
    synced: bool = Field(default=True)

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_record(self) -> dict[str, Any]:
        """Document view of the stored row; unset fields are omitted."""

        record: dict[str, Any] = {
            "id": self.id,
            "category": self.category,
            "timestamp": isoformat_utc(self.timestamp),
            "synced": self.synced,
        }
        for name in (
            "animal",
            "incident_type",
            "poaching_type",
            "maintenance_type",
            "latitude",
            "longitude",
            "user",
            "notes",
            "image_path",
            "image_filename",
        ):
            value = getattr(self, name)
            if value is not None:
                record[name] = value
        return record


__all__ = ["Observation", "Category", "POACHING_TYPES", "new_document_id", "isoformat_utc", "utcnow"]
