"""Email alerts for poaching incidents and fire detections via EmailJS."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import Any, Sequence

import httpx
from prometheus_client import Counter

from wildtrack.core.config import settings
from wildtrack.core.errors import UpstreamFailure

logger = logging.getLogger(__name__)

NOTIFICATIONS_SENT = Counter(
    "wildtrack_notifications_total",
    "Per-recipient email notifications attempted.",
    ["kind", "outcome"],
)


def google_maps_link(latitude: Any, longitude: Any) -> str:
    return f"https://www.google.com/maps?q={latitude},{longitude}"


def _readable_timestamp(value: Any) -> str:
    if not value:
        return "Unknown"
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return parsed.strftime("%B %d, %Y %I:%M %p UTC")


def format_incident_details(record: dict[str, Any]) -> dict[str, Any]:
    latitude = record.get("latitude")
    longitude = record.get("longitude")
    located = latitude is not None and longitude is not None
    return {
        "id": record.get("id"),
        "category": record.get("category"),
        "incident_type": record.get("incident_type"),
        "poaching_type": record.get("poaching_type") or "N/A",
        "timestamp": _readable_timestamp(record.get("timestamp")),
        "user": record.get("user") or "Unknown",
        "animal": record.get("animal") or "N/A",
        "notes": record.get("notes") or "No additional notes",
        "coordinates": f"{latitude}, {longitude}" if located else "Location not provided",
        "maps_link": google_maps_link(latitude, longitude) if located else "",
        # Only whether an image exists; the blob path is never emailed
        "has_image": bool(record.get("image_path")),
    }


def format_fire_details(properties: dict[str, Any]) -> dict[str, Any]:
    latitude = properties.get("latitude")
    longitude = properties.get("longitude")

    acq_time = properties.get("acq_time")
    formatted_time = "Unknown"
    if acq_time:
        digits = str(acq_time).zfill(4)
        formatted_time = f"{digits[:2]}:{digits[2:4]}"

    acq_date = properties.get("acq_date")
    formatted_date = "Unknown"
    if acq_date:
        try:
            formatted_date = datetime.strptime(str(acq_date), "%Y-%m-%d").strftime("%B %d, %Y")
        except ValueError:
            formatted_date = str(acq_date)

    return {
        "coordinates": f"{latitude}, {longitude}",
        "maps_link": google_maps_link(latitude, longitude),
        "brightness": properties.get("brightness") or properties.get("bright_ti4") or "N/A",
        "confidence": properties.get("confidence") or "N/A",
        "frp": properties.get("frp") or "N/A",
        "sensor": properties.get("sensor") or "Unknown",
        "acq_date": formatted_date,
        "acq_time": formatted_time,
    }


class EmailJsTransport:
    """Thin client for the EmailJS REST send endpoint."""

    def __init__(
        self,
        service_id: str,
        template_id: str,
        public_key: str,
        private_key: str,
        api_url: str = "https://api.emailjs.com/api/v1.0/email/send",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.private_key = private_key
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, template_id: str | None = None, client: httpx.AsyncClient | None = None) -> "EmailJsTransport":
        return cls(
            service_id=settings.emailjs_service_id,
            template_id=template_id or settings.emailjs_template_id,
            public_key=settings.emailjs_public_key,
            private_key=settings.emailjs_private_key,
            api_url=settings.emailjs_api_url,
            timeout=settings.http_timeout,
            client=client,
        )

    @property
    def configured(self) -> bool:
        return all((self.service_id, self.template_id, self.public_key, self.private_key))

    async def send(self, template_params: dict[str, Any]) -> str:
        """Send one templated message; returns the EmailJS response text."""

        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "accessToken": self.private_key,
            "template_params": template_params,
        }
        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=payload)
        except httpx.HTTPError as exc:
            raise UpstreamFailure("Email transport unreachable", str(exc)) from exc
        if response.status_code >= 400:
            raise UpstreamFailure(
                f"EmailJS error: {response.status_code}",
                response.text[:500],
            )
        return response.text


class NotificationDispatcher:
    """Fans one alert out to every configured recipient.

    Callers await the dispatch but never depend on it succeeding: every public
    method returns a summary dict and does not raise.
    """

    def __init__(
        self,
        transport: EmailJsTransport,
        recipients: Sequence[str],
        from_name: str = "Wildlife Tracker Alert",
    ) -> None:
        self.transport = transport
        self.recipients = [r for r in recipients if r]
        self.from_name = from_name

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient | None = None) -> "NotificationDispatcher":
        return cls(
            EmailJsTransport.from_settings(client=client),
            settings.notification_recipients,
            settings.email_from_name,
        )

    async def notify_poaching_incident(self, record: dict[str, Any]) -> dict[str, Any]:
        logger.info("Sending poaching incident notifications for %s", record.get("id"))
        try:
            details = format_incident_details(record)
            params = {
                "incident_id": details["id"],
                "incident_type": details["incident_type"],
                "poaching_type": details["poaching_type"],
                "timestamp": details["timestamp"],
                "reporter": details["user"],
                "animal": details["animal"],
                "coordinates": details["coordinates"],
                "notes": details["notes"],
                "maps_link": details["maps_link"],
                "maps_link_text": details["maps_link"],
                "image_status": "Image attached (access via app)" if details["has_image"] else "No image attached",
                "from_name": self.from_name,
            }
            return await self._broadcast("poaching", params)
        except Exception as exc:
            logger.error("Poaching notification failed", exc_info=True)
            return {"success": False, "error": str(exc)}

    async def notify_fire_alert(self, fires: Sequence[dict[str, Any]], region: str) -> dict[str, Any]:
        """Send a single consolidated alert for ``fires`` (GeoJSON features)."""

        if not fires:
            return {"success": True, "reason": "No fires to report"}
        logger.info("Sending consolidated fire alert for %d fires in %s", len(fires), region)
        try:
            first = fires[0]
            lon, lat = first["geometry"]["coordinates"]
            details = format_fire_details(dict(first.get("properties") or {}, latitude=lat, longitude=lon))
            params = {
                "incident_id": f"FIRE-{int(time.time() * 1000)}",
                "incident_type": "Fire Detected",
                "poaching_type": "N/A",
                "timestamp": f"{details['acq_date']} {details['acq_time']}",
                "reporter": "NASA FIRMS Satellite",
                "animal": "N/A",
                "coordinates": details["coordinates"],
                "notes": (
                    f"FIRE ALERT: {len(fires)} fire(s) detected in {region}. "
                    f"First detection by {details['sensor']}: confidence {details['confidence']}, "
                    f"brightness {details['brightness']}K, FRP {details['frp']} MW"
                ),
                "maps_link": details["maps_link"],
                "maps_link_text": details["maps_link"],
                "image_status": "Satellite thermal detection - check map for location",
                "from_name": self.from_name,
                "fire_count": len(fires),
            }
            return await self._broadcast("fire", params)
        except Exception as exc:
            logger.error("Fire alert notification failed", exc_info=True)
            return {"success": False, "error": str(exc)}

    async def _broadcast(self, kind: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self.transport.configured:
            logger.warning("EmailJS credentials not configured; skipping %s notification", kind)
            return {"success": False, "reason": "EmailJS not configured"}
        if not self.recipients:
            logger.warning("No notification email recipients configured")
            return {"success": False, "reason": "No recipients configured"}

        results: list[dict[str, Any]] = []
        for recipient in self.recipients:
            try:
                message_id = await self.transport.send(dict(params, to_email=recipient))
            except UpstreamFailure as exc:
                logger.warning("Failed to send %s email to %s: %s", kind, recipient, exc.message)
                NOTIFICATIONS_SENT.labels(kind=kind, outcome="failure").inc()
                results.append({"success": False, "recipient": recipient, "error": exc.message})
                continue
            NOTIFICATIONS_SENT.labels(kind=kind, outcome="success").inc()
            results.append({"success": True, "recipient": recipient, "message_id": message_id})

        sent = sum(1 for r in results if r["success"])
        return {
            "success": sent > 0,
            "results": results,
            "message": f"Sent to {sent}/{len(self.recipients)} recipients",
        }


__all__ = [
    "EmailJsTransport",
    "NotificationDispatcher",
    "format_incident_details",
    "format_fire_details",
    "google_maps_link",
]
