"""API dependencies."""

from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlmodel import Session

from wildtrack.core.config import settings
from wildtrack.core.errors import ServiceUnavailable
from wildtrack.db.session import get_engine
from wildtrack.services.fires import FirmsClient
from wildtrack.services.notifications import EmailJsTransport, NotificationDispatcher
from wildtrack.services.passcodes import PasscodeService
from wildtrack.services.storage import BlobStore


def get_db() -> Generator[Session, None, None]:
    engine = get_engine()
    if engine is None:
        raise ServiceUnavailable("Database not available", "DATABASE_URL is not configured")
    with Session(engine) as session:
        yield session


def get_blob_store() -> BlobStore:
    return BlobStore()


def get_notifier() -> NotificationDispatcher:
    return NotificationDispatcher.from_settings()


def get_firms_client() -> FirmsClient:
    return FirmsClient.from_settings()


def get_pin_transport() -> EmailJsTransport:
    return EmailJsTransport.from_settings(
        template_id=settings.emailjs_pin_template_id or settings.emailjs_template_id
    )


def get_passcode_service(
    request: Request,
    transport: EmailJsTransport = Depends(get_pin_transport),
) -> PasscodeService:
    return PasscodeService(
        request.app.state.passcode_store,
        transport,
        max_attempts=settings.passcode_max_attempts,
        session_secret=settings.session_secret,
        token_ttl_seconds=settings.session_token_ttl_minutes * 60,
        from_name=settings.email_from_name,
    )
