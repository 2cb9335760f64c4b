"""Water-quality sample model."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from wildtrack.models.observation import isoformat_utc, new_document_id, utcnow

WATER_PARAMETERS = ("cond", "tds", "as", "cr", "cu", "mn", "na", "pb")


class WaterSample(SQLModel, table=True):
    __tablename__ = "water-monitoring"

    id: str = Field(default_factory=new_document_id, primary_key=True, max_length=32)
    location: str = Field(max_length=64, index=True)
    location_name: Optional[str] = Field(default=None, max_length=255)
    date: str = Field(max_length=32, index=True)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    # Only parameters with a value are kept; "as" is not a usable attribute name
    parameters: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON))
    timestamp: datetime = Field(default_factory=utcnow)
    user: Optional[str] = Field(default=None, max_length=255)

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "id": self.id,
            "location": self.location,
            "location_name": self.location_name,
            "date": self.date,
            "timestamp": isoformat_utc(self.timestamp),
        }
        if self.latitude is not None and self.longitude is not None:
            record["latitude"] = self.latitude
            record["longitude"] = self.longitude
        if self.user:
            record["user"] = self.user
        for key in WATER_PARAMETERS:
            if key in (self.parameters or {}):
                record[key] = self.parameters[key]
        return record


__all__ = ["WaterSample", "WATER_PARAMETERS"]
