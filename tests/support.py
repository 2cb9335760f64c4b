"""Shared fixtures: in-memory store, stub notifier and an app wired to both."""

from __future__ import annotations

import shutil
import tempfile
import unittest
from typing import Any, Callable
from unittest import mock

import httpx
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import wildtrack.models  # noqa: F401  registers tables
from wildtrack import create_app
from wildtrack.api.deps import get_blob_store, get_db, get_firms_client, get_notifier, get_pin_transport
from wildtrack.core.config import settings
from wildtrack.services.fires import FirmsClient
from wildtrack.services.notifications import EmailJsTransport, NotificationDispatcher
from wildtrack.services.storage import BlobStore

API_KEY = "test-api-key"
ADMIN_KEY = "test-admin-key"
CRON_SECRET = "test-cron-secret"
SESSION_SECRET = "test-session-secret"


def make_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


def mock_async_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def stub_notifier() -> mock.Mock:
    notifier = mock.Mock(spec=NotificationDispatcher)
    notifier.notify_poaching_incident = mock.AsyncMock(return_value={"success": True, "results": []})
    notifier.notify_fire_alert = mock.AsyncMock(return_value={"success": True, "results": []})
    return notifier


class ApiTestCase(unittest.TestCase):
    """Builds a fresh app per test with the store and outbound HTTP faked."""

    def setUp(self) -> None:
        patcher = mock.patch.multiple(
            settings,
            api_key=API_KEY,
            admin_api_key=ADMIN_KEY,
            cron_secret=CRON_SECRET,
            session_secret=SESSION_SECRET,
            firms_map_key="test-map-key",
            environment="development",
        )
        patcher.start()
        self.addCleanup(patcher.stop)

        self.engine = make_engine()
        self.blob_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.blob_dir, True)
        self.blob_store = BlobStore(self.blob_dir, max_bytes=1024 * 1024)
        self.notifier = stub_notifier()

        self.firms_requests: list[httpx.Request] = []
        self.firms_response = httpx.Response(200, text="latitude,longitude\n")
        self.email_requests: list[httpx.Request] = []

        def firms_handler(request: httpx.Request) -> httpx.Response:
            self.firms_requests.append(request)
            return self.firms_response

        def email_handler(request: httpx.Request) -> httpx.Response:
            self.email_requests.append(request)
            return httpx.Response(200, text="OK")

        self.firms_client = FirmsClient("test-map-key", "https://firms.test/api/area/csv", client=mock_async_client(firms_handler))
        self.pin_transport = EmailJsTransport(
            "service", "pin-template", "public", "private",
            api_url="https://email.test/send",
            client=mock_async_client(email_handler),
        )

        self.app = create_app()
        self.app.dependency_overrides[get_db] = self._override_db
        self.app.dependency_overrides[get_blob_store] = lambda: self.blob_store
        self.app.dependency_overrides[get_notifier] = lambda: self.notifier
        self.app.dependency_overrides[get_firms_client] = lambda: self.firms_client
        self.app.dependency_overrides[get_pin_transport] = lambda: self.pin_transport
        self.client = TestClient(self.app)

    def _override_db(self):
        with Session(self.engine) as session:
            yield session

    def session(self) -> Session:
        return Session(self.engine)

    def add(self, *rows: Any) -> None:
        with self.session() as session:
            for row in rows:
                session.add(row)
            session.commit()

    def api_headers(self) -> dict[str, str]:
        return {"x-api-key": API_KEY}
