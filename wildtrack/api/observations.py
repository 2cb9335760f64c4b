"""Observation submission and map endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from sqlmodel import Session
from starlette.datastructures import UploadFile

from wildtrack.api.deps import get_blob_store, get_db, get_notifier
from wildtrack.core.errors import BadRequest
from wildtrack.services.notifications import NotificationDispatcher
from wildtrack.services.observations import ObservationService
from wildtrack.services.storage import BlobStore, ImageUpload

router = APIRouter(prefix="/observations", tags=["observations"])

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def read_submission(request: Request) -> tuple[dict[str, Any], ImageUpload | None]:
    """Accept a JSON object or a form; a form may carry the image as a file field."""

    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_TYPES):
        form = await request.form()
        payload: dict[str, Any] = {}
        image = None
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                if key == "image" and image is None:
                    content = await value.read()
                    if content:
                        image = ImageUpload(content, value.filename or "image.jpg", value.content_type)
                continue
            payload[key] = value
        return payload, image

    try:
        payload = await request.json()
    except ValueError:
        raise BadRequest("Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise BadRequest("Request body must be a JSON object")
    return payload, None


@router.post("", status_code=201)
async def create_observation(
    request: Request,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict[str, Any]:
    payload, image = await read_submission(request)
    record = await ObservationService(db, blob_store, notifier).create(payload, image)
    return {"success": True, "message": "Observation created successfully", "data": record}


@router.get("")
def list_map_observations(
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> dict[str, Any]:
    """Location-bearing observations for the map, newest first."""

    data = ObservationService(db, blob_store, notifier).list_for_map()
    return {"success": True, "data": data, "count": len(data)}


@router.get("/{observation_id}/image")
def get_observation_image(
    observation_id: str,
    db: Session = Depends(get_db),
    blob_store: BlobStore = Depends(get_blob_store),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> FileResponse:
    path, filename = ObservationService(db, blob_store, notifier).image_for(observation_id)
    return FileResponse(path, filename=filename)


__all__ = ["router", "read_submission"]
