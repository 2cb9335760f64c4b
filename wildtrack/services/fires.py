"""NASA FIRMS fire detections: feed client, CSV parsing and the scheduled check."""

from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass
from typing import Any, Iterable

import httpx
from prometheus_client import Counter

from wildtrack.core.config import settings
from wildtrack.core.errors import ServiceUnavailable, UpstreamFailure
from wildtrack.models.observation import isoformat_utc, utcnow
from wildtrack.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

FIRE_CHECKS = Counter(
    "wildtrack_fire_checks_total",
    "Scheduled fire checks by outcome.",
    ["outcome"],
)


@dataclass(frozen=True)
class BoundingBox:
    west: float
    south: float
    east: float
    north: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east

    def as_param(self) -> str:
        return f"{self.west:g},{self.south:g},{self.east:g},{self.north:g}"


BOUNDING_BOXES: dict[str, BoundingBox] = {
    "USA": BoundingBox(-125, 24, -66, 49),
    "AUS": BoundingBox(112, -44, 154, -10),
    "BRA": BoundingBox(-74, -34, -35, 5),
    "ZAF": BoundingBox(16, -35, 33, -22),
    "BWA": BoundingBox(19.9, -26.9, 29.4, -17.8),
    "WORLD": BoundingBox(-180, -90, 180, 90),
}

# Checked in order; the concession box sits inside nothing else we alert on
REGION_LABELS: tuple[tuple[str, str], ...] = (
    ("BWA", "Botswana (KPR Concession Area)"),
    ("USA", "United States"),
)
OTHER_REGION = "Other Region"

# FIRMS source id -> sensor tag
SOURCES: tuple[tuple[str, str], ...] = (
    ("VIIRS_SNPP_NRT", "VIIRS"),
    ("MODIS_NRT", "MODIS"),
)


def classify_region(latitude: float, longitude: float) -> str:
    for code, label in REGION_LABELS:
        if BOUNDING_BOXES[code].contains(latitude, longitude):
            return label
    return OTHER_REGION


def region_label(code: str) -> str:
    return dict(REGION_LABELS).get(code.upper(), OTHER_REGION)


def clamp_days(days: int | None) -> int:
    if not days or days < 1:
        return settings.fire_default_days
    return min(days, settings.fire_max_days)


def parse_fire_csv(text: str, sensor: str) -> list[dict[str, Any]]:
    """Turn a FIRMS area CSV into GeoJSON Point features tagged with ``sensor``."""

    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        return []

    reader = csv.reader(io.StringIO("\n".join(lines)))
    headers = [h.strip() for h in next(reader)]
    features: list[dict[str, Any]] = []
    for row in reader:
        if len(row) != len(headers):
            continue
        properties = {header: value.strip() for header, value in zip(headers, row)}
        try:
            latitude = float(properties.get("latitude", ""))
            longitude = float(properties.get("longitude", ""))
        except ValueError:
            continue
        properties["sensor"] = sensor
        features.append(
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [longitude, latitude]},
                "properties": properties,
            }
        )
    return features


def feature_collection(features: Iterable[dict[str, Any]]) -> dict[str, Any]:
    return {"type": "FeatureCollection", "features": list(features)}


def _looks_like_html(text: str) -> bool:
    head = text.lstrip()[:15].lower()
    return head.startswith("<!doctype") or head.startswith("<html")


class FirmsClient:
    """Fetches area CSV files from the FIRMS API."""

    def __init__(
        self,
        map_key: str,
        base_url: str = "https://firms.modaps.eosdis.nasa.gov/api/area/csv",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.map_key = map_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient | None = None) -> "FirmsClient":
        return cls(settings.firms_map_key, settings.firms_api_url, settings.http_timeout, client)

    async def fetch_csv(self, source: str, bbox: BoundingBox, days: int) -> str:
        if not self.map_key:
            raise ServiceUnavailable(
                "Fire data service not configured",
                "Set FIRMS_MAP_KEY to enable the fire feed",
            )
        url = f"{self.base_url}/{self.map_key}/{source}/{bbox.as_param()}/{days}"
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
        except httpx.HTTPError as exc:
            raise UpstreamFailure(f"Failed to fetch {source} fire data", str(exc)) from exc

        text = response.text
        if _looks_like_html(text):
            raise UpstreamFailure(
                "FIRMS API returned HTML error page",
                f"Check MAP_KEY validity. Response: {text[:200]}",
            )
        if response.status_code >= 400:
            raise UpstreamFailure(
                f"Failed to fetch {source} fire data",
                f"API returned {response.status_code}: {text[:200]}",
            )
        return text

    async def fetch_fires(self, bbox: BoundingBox, days: int) -> list[dict[str, Any]]:
        """Both sensor feeds merged, VIIRS first."""

        features: list[dict[str, Any]] = []
        for source, sensor in SOURCES:
            text = await self.fetch_csv(source, bbox, days)
            parsed = parse_fire_csv(text, sensor)
            logger.info("Parsed %d %s fire detections", len(parsed), sensor)
            features.extend(parsed)
        return features


async def fetch_fire_collection(client: FirmsClient, country: str | None, days: int | None) -> dict[str, Any]:
    code = (country or "USA").upper()
    bbox = BOUNDING_BOXES.get(code, BOUNDING_BOXES["USA"])
    window = clamp_days(days)
    logger.info("Fetching fire data for %s (bbox %s), last %d days", code, bbox.as_param(), window)
    return feature_collection(await client.fetch_fires(bbox, window))


async def run_fire_check(
    client: FirmsClient,
    notifier: NotificationDispatcher,
    region: str | None = None,
    days: int | None = None,
) -> dict[str, Any]:
    """Fetch the alert region's detections and send one consolidated alert."""

    code = (region or settings.fire_alert_region).upper()
    bbox = BOUNDING_BOXES.get(code, BOUNDING_BOXES["USA"])
    label = region_label(code)
    window = clamp_days(days or settings.fire_check_days)

    try:
        fires = await client.fetch_fires(bbox, window)
    except Exception:
        FIRE_CHECKS.labels(outcome="fetch_failed").inc()
        raise

    alert_fires = []
    for fire in fires:
        lon, lat = fire["geometry"]["coordinates"]
        if classify_region(lat, lon) == label:
            alert_fires.append(fire)

    if alert_fires:
        logger.warning("%d fires detected in %s - sending alert", len(alert_fires), label)
        summary = await notifier.notify_fire_alert(alert_fires, label)
    else:
        logger.info("No fires detected in %s", label)
        summary = {"success": True, "reason": f"No fires detected in {label}"}

    FIRE_CHECKS.labels(outcome="alerted" if alert_fires else "clear").inc()
    return {
        "success": True,
        "fires_found": len(fires),
        "alert_fires": len(alert_fires),
        "notifications_sent": bool(alert_fires) and bool(summary.get("success")),
        "timestamp": isoformat_utc(utcnow()),
    }


__all__ = [
    "BoundingBox",
    "BOUNDING_BOXES",
    "FirmsClient",
    "classify_region",
    "clamp_days",
    "fetch_fire_collection",
    "feature_collection",
    "parse_fire_csv",
    "region_label",
    "run_fire_check",
]
