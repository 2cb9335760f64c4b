"""Position capture for field clients."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

PERMISSION_DENIED = "permission_denied"
POSITION_UNAVAILABLE = "position_unavailable"
TIMEOUT = "timeout"


class GeolocationError(Exception):
    """A fix could not be produced; ``code`` says why."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass
class PositionFix:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    altitude: Optional[float] = None
    speed: Optional[float] = None
    heading: Optional[float] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class LocationProvider(Protocol):
    def current_position(self, timeout: float) -> PositionFix: ...


class StaticLocationProvider:
    """Hands back the same fix every time; used by the CLI and tests."""

    def __init__(self, fix: PositionFix | None = None, error: GeolocationError | None = None) -> None:
        self.fix = fix
        self.error = error

    def current_position(self, timeout: float) -> PositionFix:
        if self.error is not None:
            raise self.error
        if self.fix is None:
            raise GeolocationError(POSITION_UNAVAILABLE, "No position configured")
        return self.fix


def capture_position(
    provider: LocationProvider,
    timeout: float = 10.0,
    max_accuracy_m: float | None = None,
) -> PositionFix:
    """Ask ``provider`` for a fix and validate it."""

    try:
        fix = provider.current_position(timeout)
    except GeolocationError:
        raise
    except PermissionError as exc:
        raise GeolocationError(PERMISSION_DENIED, str(exc) or "Location permission denied") from exc
    except TimeoutError as exc:
        raise GeolocationError(TIMEOUT, str(exc) or "Timed out waiting for a position") from exc

    if not (-90 <= fix.latitude <= 90 and -180 <= fix.longitude <= 180):
        raise GeolocationError(
            POSITION_UNAVAILABLE,
            f"Provider returned out-of-range coordinates ({fix.latitude}, {fix.longitude})",
        )
    if max_accuracy_m is not None and fix.accuracy is not None and fix.accuracy > max_accuracy_m:
        raise GeolocationError(
            POSITION_UNAVAILABLE,
            f"Fix accuracy {fix.accuracy:.1f} m exceeds the {max_accuracy_m:.1f} m limit",
        )
    logger.debug("Captured fix %.6f, %.6f (±%s m)", fix.latitude, fix.longitude, fix.accuracy)
    return fix


__all__ = [
    "GeolocationError",
    "LocationProvider",
    "PERMISSION_DENIED",
    "POSITION_UNAVAILABLE",
    "PositionFix",
    "StaticLocationProvider",
    "TIMEOUT",
    "capture_position",
]
