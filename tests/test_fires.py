import asyncio
import unittest

import httpx

from tests.support import CRON_SECRET, ApiTestCase, stub_notifier
from wildtrack.core.errors import ServiceUnavailable
from wildtrack.services.fires import (
    BOUNDING_BOXES,
    FirmsClient,
    clamp_days,
    classify_region,
    parse_fire_csv,
    run_fire_check,
)

FIRE_CSV = (
    "latitude,longitude,bright_ti4,acq_date,acq_time,confidence,frp\n"
    "34.1,-118.2,330.5,2024-08-01,0930,n,12.3\n"
    "bad,row\n"
    "-25.3,131.0,310.2,2024-08-01,0115,l,4.0\n"
)


class TestFireParsing(unittest.TestCase):
    def test_features_are_lon_lat(self):
        features = parse_fire_csv(FIRE_CSV, "VIIRS")
        self.assertEqual(len(features), 2)
        first = features[0]
        self.assertEqual(first["geometry"], {"type": "Point", "coordinates": [-118.2, 34.1]})
        self.assertEqual(first["properties"]["sensor"], "VIIRS")
        self.assertEqual(first["properties"]["acq_time"], "0930")

    def test_non_numeric_coordinates_are_skipped(self):
        text = "latitude,longitude\nnorth,east\n1.5,2.5\n"
        features = parse_fire_csv(text, "MODIS")
        self.assertEqual([f["geometry"]["coordinates"] for f in features], [[2.5, 1.5]])

    def test_header_only(self):
        self.assertEqual(parse_fire_csv("latitude,longitude\n", "VIIRS"), [])
        self.assertEqual(parse_fire_csv("", "VIIRS"), [])

    def test_regions_and_days(self):
        self.assertEqual(classify_region(-19.5, 23.5), "Botswana (KPR Concession Area)")
        self.assertEqual(classify_region(40.0, -100.0), "United States")
        self.assertEqual(classify_region(-25.3, 131.0), "Other Region")
        self.assertEqual(clamp_days(None), 3)
        self.assertEqual(clamp_days(0), 3)
        self.assertEqual(clamp_days(2), 2)
        self.assertEqual(clamp_days(30), 5)

    def test_missing_map_key(self):
        client = FirmsClient("")
        with self.assertRaises(ServiceUnavailable):
            asyncio.run(client.fetch_csv("VIIRS_SNPP_NRT", BOUNDING_BOXES["USA"], 1))


class TestFireCheck(unittest.TestCase):
    def test_single_consolidated_alert(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text=FIRE_CSV))
        client = FirmsClient("key", client=httpx.AsyncClient(transport=transport))
        notifier = stub_notifier()

        result = asyncio.run(run_fire_check(client, notifier, region="USA", days=1))

        self.assertTrue(result["success"])
        self.assertEqual(result["fires_found"], 4)
        self.assertEqual(result["alert_fires"], 2)
        self.assertTrue(result["notifications_sent"])
        notifier.notify_fire_alert.assert_awaited_once()
        fires, label = notifier.notify_fire_alert.await_args.args
        self.assertEqual(label, "United States")
        self.assertEqual(len(fires), 2)

    def test_no_alert_when_region_is_clear(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="latitude,longitude\n"))
        client = FirmsClient("key", client=httpx.AsyncClient(transport=transport))
        notifier = stub_notifier()

        result = asyncio.run(run_fire_check(client, notifier, region="USA"))

        self.assertEqual(result["alert_fires"], 0)
        self.assertFalse(result["notifications_sent"])
        notifier.notify_fire_alert.assert_not_awaited()


class TestFireApi(ApiTestCase):
    def test_feed_merges_both_sensors(self):
        self.firms_response = httpx.Response(200, text=FIRE_CSV)
        resp = self.client.get("/api/fires?days=10&country=bwa", headers=self.api_headers())
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["type"], "FeatureCollection")
        self.assertEqual(len(body["features"]), 4)
        self.assertEqual(
            [f["properties"]["sensor"] for f in body["features"]],
            ["VIIRS", "VIIRS", "MODIS", "MODIS"],
        )
        paths = [request.url.path for request in self.firms_requests]
        self.assertEqual(len(paths), 2)
        self.assertTrue(paths[0].endswith("/test-map-key/VIIRS_SNPP_NRT/19.9,-26.9,29.4,-17.8/5"))
        self.assertIn("/MODIS_NRT/", paths[1])

    def test_html_error_page(self):
        self.firms_response = httpx.Response(200, text="<!DOCTYPE html><html>Invalid MAP_KEY</html>")
        resp = self.client.get("/api/fires", headers=self.api_headers())
        self.assertEqual(resp.status_code, 502)
        body = resp.json()
        self.assertEqual(body["error"], "UpstreamFailure")
        self.assertEqual(body["message"], "FIRMS API returned HTML error page")

    def test_upstream_status_error(self):
        self.firms_response = httpx.Response(500, text="boom")
        resp = self.client.get("/api/fires", headers=self.api_headers())
        self.assertEqual(resp.status_code, 502)

    def test_feed_requires_api_key(self):
        resp = self.client.get("/api/fires")
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(self.firms_requests, [])

    def test_cron_requires_bearer_secret(self):
        resp = self.client.get("/api/cron/fire-check")
        self.assertEqual(resp.status_code, 401)
        resp = self.client.get("/api/cron/fire-check", headers={"Authorization": "Bearer wrong"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(self.firms_requests, [])
        self.notifier.notify_fire_alert.assert_not_awaited()

    def test_cron_fire_check(self):
        self.firms_response = httpx.Response(200, text=FIRE_CSV)
        resp = self.client.get("/api/cron/fire-check", headers={"Authorization": f"Bearer {CRON_SECRET}"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(set(body), {"success", "fires_found", "alert_fires", "notifications_sent", "timestamp"})
        self.assertEqual(body["alert_fires"], 2)
        self.notifier.notify_fire_alert.assert_awaited_once()


if __name__ == "__main__":
    unittest.main()
