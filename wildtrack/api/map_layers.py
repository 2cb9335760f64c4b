"""Static GeoJSON overlays for the map."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from fastapi import APIRouter

from wildtrack.core.config import settings
from wildtrack.core.errors import NotFound, ServiceUnavailable

router = APIRouter(prefix="/map", tags=["map"])

LAYER_FILES = {
    "boundary": "boundary.geojson",
    "roads": "roads.geojson",
}


def load_layer(name: str, layers_dir: Path | None = None) -> dict[str, Any]:
    root = Path(layers_dir or settings.map_layers_dir)
    path = root / LAYER_FILES[name]
    if not path.is_file():
        raise NotFound(f"Map layer '{name}' not found")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ServiceUnavailable(f"Map layer '{name}' could not be read", str(exc))


@router.get("/boundary")
def get_boundary() -> dict[str, Any]:
    return load_layer("boundary")


@router.get("/roads")
def get_roads() -> dict[str, Any]:
    return load_layer("roads")


__all__ = ["router", "load_layer", "LAYER_FILES"]
