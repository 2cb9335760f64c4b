import asyncio
import json
import unittest
from unittest import mock

import httpx
from sqlmodel import Session

from tests.support import SESSION_SECRET, ApiTestCase, make_engine, mock_async_client
from wildtrack.core.errors import BadRequest, UpstreamFailure
from wildtrack.core.security import RateLimiter, verify_session_token
from wildtrack.models import UserAccount
from wildtrack.services.notifications import EmailJsTransport
from wildtrack.services.passcodes import (
    DatabasePasscodeStore,
    InMemoryPasscodeStore,
    PasscodeService,
    PendingPasscode,
    hash_pin,
    render_pin_email,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class TestPinFlowApi(ApiTestCase):
    def setUp(self):
        super().setUp()
        patcher = mock.patch("wildtrack.services.passcodes.generate_pin", return_value="123456")
        patcher.start()
        self.addCleanup(patcher.stop)

    def request_pin(self, email="Ranger@Example.org", name="Ranger One"):
        return self.client.post("/api/auth/request-pin", json={"email": email, "name": name})

    def verify(self, pin, email="ranger@example.org"):
        return self.client.post("/api/auth/verify-pin", json={"email": email, "pin": pin})

    def test_request_and_verify(self):
        resp = self.request_pin()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"success": True, "message": "PIN sent to your email"})

        self.assertEqual(len(self.email_requests), 1)
        sent = json.loads(self.email_requests[0].content)
        self.assertEqual(sent["template_id"], "pin-template")
        self.assertEqual(sent["template_params"]["to_email"], "Ranger@Example.org")
        self.assertIn("123456", sent["template_params"]["message"])

        resp = self.verify(123456)
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["uid"], "email_ranger_example_org")
        self.assertEqual(body["name"], "Ranger One")
        claims = verify_session_token(body["token"], SESSION_SECRET)
        self.assertEqual(claims["email"], "ranger@example.org")

        with self.session() as session:
            user = session.get(UserAccount, "email_ranger_example_org")
            self.assertIsNotNone(user)
            self.assertIsNotNone(user.last_login)

    def test_pin_is_single_use(self):
        self.request_pin()
        self.assertEqual(self.verify("123456").status_code, 200)
        resp = self.verify("123456")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "PIN not found or expired. Please request a new PIN.")

    def test_wrong_pin_counts_attempts(self):
        self.request_pin()
        resp = self.verify("000000")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Invalid PIN. 4 attempts remaining.")
        for _ in range(4):
            self.verify("000000")
        resp = self.verify("123456")
        self.assertEqual(resp.json()["message"], "Too many failed attempts. Please request a new PIN.")

    def test_missing_fields(self):
        resp = self.client.post("/api/auth/request-pin", json={"email": "ranger@example.org"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Email and name are required")

        resp = self.request_pin(email="not-an-email")
        self.assertEqual(resp.json()["message"], "Invalid email format")

        resp = self.client.post("/api/auth/verify-pin", json={"email": "ranger@example.org"})
        self.assertEqual(resp.json()["message"], "Email and PIN are required")

    def test_revoked_user_cannot_sign_in(self):
        self.add(
            UserAccount(
                id="email_ranger_example_org", uid="email_ranger_example_org",
                name="Ranger One", email="ranger@example.org", status="revoked",
            )
        )
        self.request_pin()
        resp = self.verify("123456")
        self.assertEqual(resp.status_code, 403)

    def test_auth_rate_limit(self):
        self.app.state.auth_limiter = RateLimiter(1, 900)
        self.request_pin()
        resp = self.request_pin()
        self.assertEqual(resp.status_code, 429)
        self.assertEqual(resp.json()["error"], "RateLimited")


class TestPasscodeService(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = InMemoryPasscodeStore(15 * 60, 5 * 60, clock=self.clock)
        self.status = 200
        self.transport = EmailJsTransport(
            "service", "template", "public", "private",
            client=mock_async_client(lambda request: httpx.Response(self.status, text="OK")),
        )
        self.service = PasscodeService(self.store, self.transport, session_secret=SESSION_SECRET)
        self.engine = make_engine()

    def test_expired_pin_is_rejected(self):
        with mock.patch("wildtrack.services.passcodes.generate_pin", return_value="654321"):
            asyncio.run(self.service.request_pin("ranger@example.org", "Ranger"))
        self.clock.now += 15 * 60 + 1
        with Session(self.engine) as session:
            with self.assertRaises(BadRequest) as ctx:
                self.service.verify_pin(session, "ranger@example.org", "654321")
        self.assertIn("expired", ctx.exception.message)
        self.assertEqual(len(self.store), 0)

    def test_send_failure_discards_pending_pin(self):
        self.status = 500
        with self.assertRaises(UpstreamFailure) as ctx:
            asyncio.run(self.service.request_pin("ranger@example.org", "Ranger"))
        self.assertEqual(ctx.exception.message, "Failed to send PIN email. Please try again.")
        self.assertEqual(len(self.store), 0)

    def test_unconfigured_transport(self):
        service = PasscodeService(self.store, EmailJsTransport("", "", "", ""), session_secret=SESSION_SECRET)
        with self.assertRaises(UpstreamFailure):
            asyncio.run(service.request_pin("ranger@example.org", "Ranger"))

    def test_sweep_evicts_expired_entries(self):
        self.store.put("old@example.org", PendingPasscode("h", "s", "Old", issued_at=self.clock.now))
        self.clock.now += 10 * 60
        self.store.put("new@example.org", PendingPasscode("h", "s", "New", issued_at=self.clock.now))
        self.assertEqual(len(self.store), 2)
        self.clock.now += 6 * 60
        self.assertIsNone(self.store.get("old@example.org"))
        self.assertIsNotNone(self.store.get("new@example.org"))
        self.assertEqual(len(self.store), 1)

    def test_store_returns_copies(self):
        self.store.put("a@example.org", PendingPasscode("h", "s", "A", issued_at=self.clock.now))
        entry = self.store.get("a@example.org")
        entry.attempts = 3
        self.assertEqual(self.store.get("a@example.org").attempts, 0)

    def test_database_store(self):
        store = DatabasePasscodeStore(self.engine, 60, clock=self.clock)
        store.put("a@example.org", PendingPasscode(hash_pin("111111", "salt"), "salt", "A", issued_at=self.clock.now))
        entry = store.get("a@example.org")
        self.assertEqual(entry.pin_hash, hash_pin("111111", "salt"))
        entry.attempts = 2
        store.put("a@example.org", entry)
        self.assertEqual(store.get("a@example.org").attempts, 2)
        self.clock.now += 61
        self.assertEqual(store.sweep(), 1)
        self.assertIsNone(store.get("a@example.org"))

    def test_pin_email_escapes_name(self):
        body = render_pin_email("<script>", "123456", 15)
        self.assertIn("&lt;script&gt;", body)
        self.assertIn("123456", body)


if __name__ == "__main__":
    unittest.main()
