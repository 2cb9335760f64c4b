"""Email PIN sign-in endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from wildtrack.api.deps import get_db, get_passcode_service
from wildtrack.services.passcodes import PasscodeService

router = APIRouter(prefix="/auth", tags=["auth"])


class PinRequestPayload(BaseModel):
    email: str | None = None
    name: str | None = None


class PinVerifyPayload(BaseModel):
    email: str | None = None
    pin: str | int | None = None


@router.post("/request-pin")
async def request_pin(
    payload: PinRequestPayload,
    service: PasscodeService = Depends(get_passcode_service),
) -> dict[str, Any]:
    await service.request_pin(payload.email, payload.name)
    return {"success": True, "message": "PIN sent to your email"}


@router.post("/verify-pin")
def verify_pin(
    payload: PinVerifyPayload,
    service: PasscodeService = Depends(get_passcode_service),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    pin = None if payload.pin is None else str(payload.pin)
    result = service.verify_pin(db, payload.email, pin)
    return {"success": True, **result}


__all__ = ["router"]
