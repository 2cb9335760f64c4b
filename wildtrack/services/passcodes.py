"""Email one-time passcodes: pending-code stores and the request/verify flow."""

from __future__ import annotations

import hashlib
import hmac
import html
import logging
import re
import secrets
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Callable

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from wildtrack.core.config import settings
from wildtrack.core.errors import BadRequest, Forbidden, ServiceUnavailable, UpstreamFailure
from wildtrack.core.security import sign_session_token
from wildtrack.models import PendingPasscodeRecord
from wildtrack.services.notifications import EmailJsTransport
from wildtrack.services.users import email_user_key, record_login

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class PendingPasscode:
    pin_hash: str
    salt: str
    name: str
    issued_at: float
    attempts: int = 0


def generate_pin() -> str:
    return str(100000 + secrets.randbelow(900000))


def hash_pin(pin: str, salt: str) -> str:
    return hashlib.sha256(f"{salt}:{pin}".encode("utf-8")).hexdigest()


class PasscodeStore(ABC):
    """Key-value store for pending passcodes keyed by normalized email."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def is_expired(self, entry: PendingPasscode) -> bool:
        return self.clock() - entry.issued_at > self.ttl_seconds

    @abstractmethod
    def get(self, key: str) -> PendingPasscode | None: ...

    @abstractmethod
    def put(self, key: str, entry: PendingPasscode) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def sweep(self) -> int:
        """Evict expired entries; returns how many were removed."""


class InMemoryPasscodeStore(PasscodeStore):
    """Dict-backed store, swept at most once per ``sweep_interval`` on access."""

    def __init__(
        self,
        ttl_seconds: float,
        sweep_interval: float,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__(ttl_seconds, clock)
        self.sweep_interval = sweep_interval
        self._entries: dict[str, PendingPasscode] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> PendingPasscode | None:
        self._maybe_sweep()
        entry = self._entries.get(key)
        return replace(entry) if entry else None

    def put(self, key: str, entry: PendingPasscode) -> None:
        self._maybe_sweep()
        self._entries[key] = replace(entry)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def sweep(self) -> int:
        expired = [key for key, entry in self._entries.items() if self.is_expired(entry)]
        for key in expired:
            del self._entries[key]
        self._last_sweep = self.clock()
        if expired:
            logger.debug("Evicted %d expired passcodes", len(expired))
        return len(expired)

    def _maybe_sweep(self) -> None:
        if self.clock() - self._last_sweep >= self.sweep_interval:
            self.sweep()


class DatabasePasscodeStore(PasscodeStore):
    """Pending passcodes in the ``pending_passcodes`` table, shared across workers."""

    def __init__(self, engine: Engine, ttl_seconds: float, clock: Callable[[], float] = time.time) -> None:
        super().__init__(ttl_seconds, clock)
        self.engine = engine

    def get(self, key: str) -> PendingPasscode | None:
        with Session(self.engine) as session:
            row = session.get(PendingPasscodeRecord, key)
            if row is None:
                return None
            return PendingPasscode(
                pin_hash=row.pin_hash,
                salt=row.salt,
                name=row.name,
                issued_at=row.issued_at,
                attempts=row.attempts,
            )

    def put(self, key: str, entry: PendingPasscode) -> None:
        with Session(self.engine) as session:
            row = session.get(PendingPasscodeRecord, key) or PendingPasscodeRecord(email=key)
            row.pin_hash = entry.pin_hash
            row.salt = entry.salt
            row.name = entry.name
            row.issued_at = entry.issued_at
            row.attempts = entry.attempts
            session.add(row)
            session.commit()

    def delete(self, key: str) -> None:
        with Session(self.engine) as session:
            row = session.get(PendingPasscodeRecord, key)
            if row is not None:
                session.delete(row)
                session.commit()

    def sweep(self) -> int:
        cutoff = self.clock() - self.ttl_seconds
        with Session(self.engine) as session:
            expired = session.exec(
                select(PendingPasscodeRecord).where(PendingPasscodeRecord.issued_at < cutoff)
            ).all()
            for row in expired:
                session.delete(row)
            if expired:
                session.commit()
            return len(expired)


def build_passcode_store(engine: Engine | None = None) -> PasscodeStore:
    ttl = settings.passcode_ttl_minutes * 60
    if settings.passcode_backend == "database":
        if engine is None:
            raise RuntimeError("database passcode backend requires a configured DATABASE_URL")
        return DatabasePasscodeStore(engine, ttl)
    return InMemoryPasscodeStore(ttl, settings.passcode_sweep_minutes * 60)


def render_pin_email(name: str, pin: str, ttl_minutes: int) -> str:
    name = html.escape(name)
    return (
        f"<p>Hello {name}!</p>"
        "<p>To complete your sign-in to Wildlife Tracker, use this verification PIN:</p>"
        f'<p style="font-size:32px;letter-spacing:8px;font-family:monospace"><strong>{pin}</strong></p>'
        f"<p>The PIN is valid for {ttl_minutes} minutes. Do not share it with anyone.</p>"
        "<p>If you did not request this PIN, you can ignore this email.</p>"
    )


class PasscodeService:
    def __init__(
        self,
        store: PasscodeStore,
        transport: EmailJsTransport,
        *,
        max_attempts: int = 5,
        session_secret: str = "",
        token_ttl_seconds: int = 7 * 24 * 3600,
        from_name: str = "Wildlife Tracker",
    ) -> None:
        self.store = store
        self.transport = transport
        self.max_attempts = max_attempts
        self.session_secret = session_secret
        self.token_ttl_seconds = token_ttl_seconds
        self.from_name = from_name

    async def request_pin(self, email: str | None, name: str | None) -> None:
        email = (email or "").strip()
        name = (name or "").strip()
        if not email or not name:
            raise BadRequest("Email and name are required")
        if not EMAIL_RE.match(email):
            raise BadRequest("Invalid email format")

        if not self.transport.configured:
            raise UpstreamFailure("Failed to send PIN email. Please try again.", "EmailJS not configured")

        key = email.lower()
        pin = generate_pin()
        salt = secrets.token_hex(16)
        self.store.put(
            key,
            PendingPasscode(pin_hash=hash_pin(pin, salt), salt=salt, name=name, issued_at=self.store.clock()),
        )

        ttl_minutes = int(self.store.ttl_seconds // 60)
        try:
            await self.transport.send(
                {
                    "to_email": email,
                    "subject": "Your Wildlife Tracker PIN Code",
                    "message": render_pin_email(name, pin, ttl_minutes),
                    "html_content": render_pin_email(name, pin, ttl_minutes),
                    "from_name": self.from_name,
                }
            )
        except UpstreamFailure as exc:
            self.store.delete(key)
            logger.error("Failed to send PIN email to %s: %s", email, exc.message)
            raise UpstreamFailure("Failed to send PIN email. Please try again.", exc.details) from exc
        logger.info("PIN issued for %s", key)

    def verify_pin(self, session: Session, email: str | None, pin: str | None) -> dict[str, Any]:
        email = (email or "").strip()
        pin = str(pin or "").strip()
        if not email or not pin:
            raise BadRequest("Email and PIN are required")
        if not self.session_secret:
            raise ServiceUnavailable("Session signing is not configured")

        key = email.lower()
        entry = self.store.get(key)
        if entry is None:
            raise BadRequest("PIN not found or expired. Please request a new PIN.")
        if self.store.is_expired(entry):
            self.store.delete(key)
            raise BadRequest("PIN has expired. Please request a new PIN.")
        if entry.attempts >= self.max_attempts:
            self.store.delete(key)
            raise BadRequest("Too many failed attempts. Please request a new PIN.")

        if not hmac.compare_digest(hash_pin(pin, entry.salt), entry.pin_hash):
            entry.attempts += 1
            self.store.put(key, entry)
            remaining = max(self.max_attempts - entry.attempts, 0)
            raise BadRequest(f"Invalid PIN. {remaining} attempts remaining.")

        self.store.delete(key)
        user = record_login(session, key, entry.name)
        if user.is_revoked:
            logger.warning("Revoked user %s attempted to sign in", user.id)
            raise Forbidden("Your account has been suspended. Please contact an administrator.")

        uid = email_user_key(key)
        token = sign_session_token(
            {"uid": uid, "email": key, "name": entry.name, "provider": "email_pin"},
            self.session_secret,
            self.token_ttl_seconds,
        )
        logger.info("PIN verified for %s", uid)
        return {"token": token, "uid": uid, "name": entry.name}


__all__ = [
    "PendingPasscode",
    "PasscodeStore",
    "InMemoryPasscodeStore",
    "DatabasePasscodeStore",
    "PasscodeService",
    "build_passcode_store",
    "generate_pin",
    "hash_pin",
]
