"""Command line capture/upload helper."""

from __future__ import annotations

import argparse
import json
import os
import sys
import time
from pathlib import Path

from wildtrack.client.geolocation import GeolocationError, PositionFix, StaticLocationProvider, capture_position
from wildtrack.client.payloads import build_feature, build_feature_collection, build_observation
from wildtrack.client.transport import BackendSink, GitHubContentsSink, UploadError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="wildtrack-submit", description="Submit a field observation.")
    parser.add_argument("--lat", type=float, required=True, help="Latitude in decimal degrees.")
    parser.add_argument("--lon", type=float, required=True, help="Longitude in decimal degrees.")
    parser.add_argument("--accuracy", type=float, default=None, help="Fix accuracy in metres.")
    parser.add_argument("--altitude", type=float, default=None)
    parser.add_argument("--timeout", type=float, default=30.0, help="HTTP timeout in seconds.")
    sub = parser.add_subparsers(dest="command", required=True)

    obs = sub.add_parser("observation", help="POST an observation to the tracker API.")
    obs.add_argument("--url", default=os.environ.get("WILDTRACK_API_URL", "http://localhost:8000/api"))
    obs.add_argument("--api-key", default=os.environ.get("WILDTRACK_API_KEY", ""))
    obs.add_argument("--category", required=True, choices=["Sighting", "Incident", "Maintenance"])
    obs.add_argument("--animal")
    obs.add_argument("--incident-type")
    obs.add_argument("--poaching-type")
    obs.add_argument("--maintenance-type")
    obs.add_argument("--notes")
    obs.add_argument("--user")
    obs.add_argument("--photo", type=Path, help="Optional image sent as a multipart upload.")

    geo = sub.add_parser("geojson", help="Commit a GeoJSON point to a GitHub repository.")
    geo.add_argument("--repo", default=os.environ.get("GITHUB_REPO", ""), help="owner/repo")
    geo.add_argument("--token", default=os.environ.get("GITHUB_TOKEN", ""))
    geo.add_argument("--directory", default="data")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    provider = StaticLocationProvider(
        PositionFix(latitude=args.lat, longitude=args.lon, accuracy=args.accuracy, altitude=args.altitude)
    )
    try:
        fix = capture_position(provider)
    except GeolocationError as exc:
        print(f"Location error ({exc.code}): {exc}", file=sys.stderr)
        return 2

    try:
        if args.command == "observation":
            record = build_observation(
                fix,
                category=args.category,
                animal=args.animal,
                incident_type=args.incident_type,
                poaching_type=args.poaching_type,
                maintenance_type=args.maintenance_type,
                notes=args.notes,
                user=args.user,
            )
            photo = (args.photo.name, args.photo.read_bytes()) if args.photo else None
            result = BackendSink(args.url, args.api_key, timeout=args.timeout).submit(record, photo)
            print(json.dumps(result, indent=2))
        else:
            filename = f"observation_{int(time.time() * 1000)}.geojson"
            collection = build_feature_collection([build_feature(fix)])
            sink = GitHubContentsSink(args.repo, args.token, directory=args.directory, timeout=args.timeout)
            sink.upload(filename, json.dumps(collection, indent=2))
            print(f"Uploaded {filename}")
    except (UploadError, OSError) as exc:
        print(f"Upload failed: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
