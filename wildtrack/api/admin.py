"""Admin endpoints: user management and the log buffer."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlmodel import Session

from wildtrack.api.deps import get_db
from wildtrack.core.logging_config import get_log_buffer
from wildtrack.core.security import require_admin_key
from wildtrack.services import users

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])

ADMIN_ACTOR = "admin"


class UserCreatePayload(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    uid: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    role: str = Field(default="user", max_length=32)


class UserUpdatePayload(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    role: str | None = Field(default=None, max_length=32)


class UserStatusPayload(BaseModel):
    status: str


@router.get("/users")
def list_users(db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"success": True, **users.list_users(db)}


@router.post("/users", status_code=201)
def create_user(payload: UserCreatePayload, db: Session = Depends(get_db)) -> dict[str, Any]:
    user = users.create_user(
        db,
        name=payload.name,
        email=payload.email,
        uid=payload.uid,
        phone=payload.phone,
        role=payload.role,
    )
    return {"success": True, "user": user.to_summary()}


@router.get("/users/{user_id}")
def get_user(user_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    return {"success": True, "user": users.get_user(db, user_id).to_summary()}


@router.patch("/users/{user_id}")
def update_user(user_id: str, payload: UserUpdatePayload, db: Session = Depends(get_db)) -> dict[str, Any]:
    user = users.update_user(db, user_id, payload.model_dump(exclude_none=True), ADMIN_ACTOR)
    return {"success": True, "user": user.to_summary()}


@router.patch("/users/{user_id}/status")
def set_user_status(user_id: str, payload: UserStatusPayload, db: Session = Depends(get_db)) -> dict[str, Any]:
    user = users.set_user_status(db, user_id, payload.status, ADMIN_ACTOR)
    verb = "revoked" if user.status == "revoked" else "restored"
    return {
        "success": True,
        "message": f"User {verb} successfully",
        "userId": user.id,
        "status": user.status,
    }


@router.delete("/users/{user_id}")
def delete_user(user_id: str, db: Session = Depends(get_db)) -> dict[str, Any]:
    users.delete_user(db, user_id)
    return {"success": True, "message": "User deleted successfully", "userId": user_id}


@router.get("/logs")
def list_logs(
    limit: int = Query(100, ge=1, le=200),
    level: str | None = Query(None, max_length=10),
) -> dict[str, Any]:
    return {"logs": get_log_buffer(limit=limit, level=level)}


__all__ = ["router"]
