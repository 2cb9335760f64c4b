"""Client-side capture, payload and upload helpers."""

from .geolocation import GeolocationError, PositionFix, StaticLocationProvider, capture_position
from .payloads import build_feature, build_feature_collection, build_observation
from .transport import BackendSink, GitHubContentsSink, UploadError

__all__ = [
    "BackendSink",
    "GeolocationError",
    "GitHubContentsSink",
    "PositionFix",
    "StaticLocationProvider",
    "UploadError",
    "build_feature",
    "build_feature_collection",
    "build_observation",
    "capture_position",
]
