import base64
import json
import unittest
from datetime import datetime, timezone

import httpx

from wildtrack.client import (
    BackendSink,
    GeolocationError,
    GitHubContentsSink,
    PositionFix,
    StaticLocationProvider,
    UploadError,
    build_feature,
    build_feature_collection,
    build_observation,
    capture_position,
)
from wildtrack.client.cli import main as cli_main

FIX = PositionFix(
    latitude=-19.25,
    longitude=23.5,
    accuracy=4.5,
    altitude=950.0,
    timestamp=datetime(2024, 8, 1, 9, 30, tzinfo=timezone.utc),
)


class DeniedProvider:
    def current_position(self, timeout):
        raise PermissionError("user said no")


class TestCapture(unittest.TestCase):
    def test_static_fix(self):
        self.assertIs(capture_position(StaticLocationProvider(FIX)), FIX)

    def test_permission_denied(self):
        with self.assertRaises(GeolocationError) as ctx:
            capture_position(DeniedProvider())
        self.assertEqual(ctx.exception.code, "permission_denied")

    def test_out_of_range_is_unavailable(self):
        with self.assertRaises(GeolocationError) as ctx:
            capture_position(StaticLocationProvider(PositionFix(latitude=120, longitude=0)))
        self.assertEqual(ctx.exception.code, "position_unavailable")

    def test_accuracy_limit(self):
        with self.assertRaises(GeolocationError):
            capture_position(StaticLocationProvider(FIX), max_accuracy_m=2)


class TestPayloads(unittest.TestCase):
    def test_feature_is_lon_lat(self):
        feature = build_feature(FIX, feature_id="point_1")
        self.assertEqual(feature["geometry"]["coordinates"], [23.5, -19.25])
        self.assertEqual(
            feature["properties"],
            {"id": "point_1", "timestamp": "2024-08-01T09:30:00.000Z", "accuracy": 4.5, "altitude": 950.0},
        )
        collection = build_feature_collection([feature])
        self.assertEqual(collection["type"], "FeatureCollection")
        self.assertEqual(len(collection["features"]), 1)

    def test_observation_record(self):
        record = build_observation(FIX, category="Sighting", animal="Lion", notes="", photo=b"jpg", photo_filename="lion.jpg")
        self.assertEqual(record["latitude"], -19.25)
        self.assertEqual(record["longitude"], 23.5)
        self.assertNotIn("notes", record)
        self.assertEqual(base64.b64decode(record["image"]), b"jpg")
        self.assertEqual(record["image_filename"], "lion.jpg")


class TestSinks(unittest.TestCase):
    def test_github_upload(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"content": {"path": "data/obs.geojson"}})

        sink = GitHubContentsSink("org/field-data", "tok", client=httpx.Client(transport=httpx.MockTransport(handler)))
        sink.upload("obs.geojson", '{"type": "FeatureCollection"}')

        request = seen[0]
        self.assertEqual(request.method, "PUT")
        self.assertEqual(request.url.path, "/repos/org/field-data/contents/data/obs.geojson")
        self.assertEqual(request.headers["authorization"], "token tok")
        body = json.loads(request.content)
        self.assertEqual(body["message"], "Add wildlife observation: obs.geojson")
        self.assertEqual(base64.b64decode(body["content"]), b'{"type": "FeatureCollection"}')

    def test_github_failure(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(422, text="sha missing")))
        sink = GitHubContentsSink("org/field-data", "tok", client=client)
        with self.assertRaises(UploadError) as ctx:
            sink.upload("obs.geojson", "{}")
        self.assertEqual(ctx.exception.status_code, 422)

    def test_backend_json_and_multipart(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(201, json={"success": True, "data": {"id": "abc"}})

        sink = BackendSink("http://api.test/api", "key", client=httpx.Client(transport=httpx.MockTransport(handler)))
        self.assertTrue(sink.submit({"category": "Sighting", "animal": "Lion"})["success"])
        sink.submit({"category": "Sighting", "animal": "Lion"}, photo=("lion.jpg", b"jpg"))

        self.assertEqual(seen[0].url.path, "/api/observations")
        self.assertEqual(seen[0].headers["x-api-key"], "key")
        self.assertEqual(seen[0].headers["content-type"], "application/json")
        self.assertTrue(seen[1].headers["content-type"].startswith("multipart/form-data"))

    def test_backend_error_message(self):
        client = httpx.Client(
            transport=httpx.MockTransport(
                lambda r: httpx.Response(400, json={"success": False, "message": "Animal is required for sightings"})
            )
        )
        with self.assertRaises(UploadError) as ctx:
            BackendSink("http://api.test/api", "key", client=client).submit({"category": "Sighting"})
        self.assertEqual(str(ctx.exception), "Animal is required for sightings")


class TestCli(unittest.TestCase):
    def test_rejects_bad_coordinates(self):
        code = cli_main(["--lat", "95", "--lon", "10", "geojson", "--repo", "org/repo", "--token", "t"])
        self.assertEqual(code, 2)

    def test_geojson_requires_repo(self):
        code = cli_main(["--lat", "1", "--lon", "2", "geojson", "--repo", "", "--token", ""])
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
