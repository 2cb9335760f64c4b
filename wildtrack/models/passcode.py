"""Pending one-time passcodes for the database-backed store."""

from __future__ import annotations

from sqlmodel import Field, SQLModel


class PendingPasscodeRecord(SQLModel, table=True):
    __tablename__ = "pending_passcodes"

    email: str = Field(primary_key=True, max_length=255)
    pin_hash: str = Field(max_length=64)
    salt: str = Field(max_length=64)
    name: str = Field(max_length=255)
    issued_at: float = Field(index=True, description="epoch seconds")
    attempts: int = Field(default=0)


__all__ = ["PendingPasscodeRecord"]
