"""Field user accounts referenced by the revocation check."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlmodel import Field, SQLModel

from wildtrack.models.observation import isoformat_utc, utcnow

USER_STATUSES = ("active", "revoked")


class UserAccount(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True, max_length=255, description="uid or email_<sanitized email>")
    uid: Optional[str] = Field(default=None, max_length=255, index=True)
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255, index=True)
    phone: Optional[str] = Field(default=None, max_length=64)
    role: str = Field(default="user", max_length=32)
    status: str = Field(default="active", max_length=16, description="active|revoked")
    registered_at: datetime = Field(default_factory=utcnow, index=True)
    last_login: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = Field(default=None, max_length=64)

    @property
    def is_revoked(self) -> bool:
        return self.status == "revoked"

    def to_summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "role": self.role or "user",
            "status": self.status or "active",
            "registered_at": isoformat_utc(self.registered_at) if self.registered_at else None,
            "last_login": isoformat_utc(self.last_login) if self.last_login else None,
        }


__all__ = ["UserAccount", "USER_STATUSES"]
