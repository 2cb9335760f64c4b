import asyncio
import json
import unittest

import httpx

from tests.support import mock_async_client
from wildtrack.services.notifications import (
    EmailJsTransport,
    NotificationDispatcher,
    format_fire_details,
    format_incident_details,
)

INCIDENT = {
    "id": "abc123",
    "category": "Incident",
    "incident_type": "Poaching - Snare",
    "poaching_type": "Snare",
    "latitude": -19.5,
    "longitude": 23.1,
    "timestamp": "2024-08-01T09:30:00.000Z",
    "user": "ranger@example.org",
    "image_path": "observations/1_snare.jpg",
}


class TestNotificationDispatcher(unittest.TestCase):
    def setUp(self):
        self.sent = []

        def handler(request):
            payload = json.loads(request.content)
            self.sent.append(payload)
            if payload["template_params"]["to_email"].startswith("broken"):
                return httpx.Response(400, text="The recipient address is invalid")
            return httpx.Response(200, text="OK")

        self.transport = EmailJsTransport(
            "service", "template", "public", "private",
            api_url="https://email.test/send",
            client=mock_async_client(handler),
        )

    def test_partial_delivery_summary(self):
        dispatcher = NotificationDispatcher(self.transport, ["ops@example.org", "broken@example.org"])
        summary = asyncio.run(dispatcher.notify_poaching_incident(INCIDENT))

        self.assertTrue(summary["success"])
        self.assertEqual(summary["message"], "Sent to 1/2 recipients")
        self.assertEqual(
            [(r["recipient"], r["success"]) for r in summary["results"]],
            [("ops@example.org", True), ("broken@example.org", False)],
        )
        params = self.sent[0]["template_params"]
        self.assertEqual(params["maps_link"], "https://www.google.com/maps?q=-19.5,23.1")
        self.assertEqual(params["image_status"], "Image attached (access via app)")
        self.assertNotIn("observations/1_snare.jpg", json.dumps(params))
        self.assertEqual(self.sent[0]["accessToken"], "private")

    def test_unconfigured_transport_is_skipped(self):
        dispatcher = NotificationDispatcher(EmailJsTransport("", "", "", ""), ["ops@example.org"])
        summary = asyncio.run(dispatcher.notify_poaching_incident(INCIDENT))
        self.assertEqual(summary, {"success": False, "reason": "EmailJS not configured"})

    def test_no_recipients(self):
        dispatcher = NotificationDispatcher(self.transport, [])
        summary = asyncio.run(dispatcher.notify_poaching_incident(INCIDENT))
        self.assertFalse(summary["success"])
        self.assertEqual(self.sent, [])

    def test_fire_alert_is_one_message_per_recipient(self):
        dispatcher = NotificationDispatcher(self.transport, ["ops@example.org"])
        fires = [
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [-118.2, 34.1]},
                "properties": {"acq_date": "2024-08-01", "acq_time": "930", "sensor": "VIIRS", "frp": "12.3"},
            },
            {
                "type": "Feature",
                "geometry": {"type": "Point", "coordinates": [-117.0, 35.0]},
                "properties": {"sensor": "MODIS"},
            },
        ]
        summary = asyncio.run(dispatcher.notify_fire_alert(fires, "United States"))
        self.assertTrue(summary["success"])
        self.assertEqual(len(self.sent), 1)
        params = self.sent[0]["template_params"]
        self.assertEqual(params["fire_count"], 2)
        self.assertEqual(params["coordinates"], "34.1, -118.2")
        self.assertIn("2 fire(s) detected in United States", params["notes"])

    def test_empty_fire_list(self):
        dispatcher = NotificationDispatcher(self.transport, ["ops@example.org"])
        summary = asyncio.run(dispatcher.notify_fire_alert([], "United States"))
        self.assertTrue(summary["success"])
        self.assertEqual(self.sent, [])


class TestFormatting(unittest.TestCase):
    def test_incident_without_location(self):
        details = format_incident_details({"id": "x", "incident_type": "Snare"})
        self.assertEqual(details["coordinates"], "Location not provided")
        self.assertEqual(details["maps_link"], "")
        self.assertFalse(details["has_image"])
        self.assertEqual(details["timestamp"], "Unknown")

    def test_fire_time_and_date(self):
        details = format_fire_details({"latitude": 1, "longitude": 2, "acq_time": "930", "acq_date": "2024-08-01"})
        self.assertEqual(details["acq_time"], "09:30")
        self.assertEqual(details["acq_date"], "August 01, 2024")


if __name__ == "__main__":
    unittest.main()
