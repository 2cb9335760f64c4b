"""Shared-secret guards, per-client rate limiting and signed session tokens."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from collections import deque
from typing import Any, Callable, Deque

from fastapi import Request

from wildtrack.core.config import settings
from wildtrack.core.errors import BadRequest, RateLimited, ServiceUnavailable, Unauthorized


def secrets_match(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""

    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_api_key(request: Request) -> None:
    provided = request.headers.get("x-api-key") or request.query_params.get("apiKey")
    if not secrets_match(provided, settings.api_key):
        raise Unauthorized("Valid API key required")


def require_admin_key(request: Request) -> None:
    if not secrets_match(request.headers.get("x-admin-key"), settings.admin_api_key):
        raise Unauthorized("Admin authentication required")


def require_cron_secret(request: Request) -> None:
    header = request.headers.get("authorization", "")
    token = header[len("Bearer ") :] if header.startswith("Bearer ") else ""
    if not secrets_match(token, settings.cron_secret):
        raise Unauthorized("Unauthorized")


class RateLimiter:
    """Counts requests per caller over a rolling window.

    Callers whose window has fully drained are dropped once per window, so
    the table only holds clients seen recently.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, Deque[float]] = {}
        self._last_sweep = clock()

    def __len__(self) -> int:
        return len(self._hits)

    def hit(self, key: str) -> bool:
        """Record one request for ``key``; False once the window is exhausted."""

        now = self._clock()
        if now - self._last_sweep >= self.window_seconds:
            self._sweep(now)
        hits = self._hits.setdefault(key, deque())
        while hits and now - hits[0] >= self.window_seconds:
            hits.popleft()
        if len(hits) >= self.max_requests:
            return False
        hits.append(now)
        return True

    def reset(self) -> None:
        self._hits.clear()

    def _sweep(self, now: float) -> None:
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for key in stale:
            del self._hits[key]
        self._last_sweep = now


def client_address(request: Request, trusted_hops: int | None = None) -> str:
    """Caller address for rate limiting.

    ``X-Forwarded-For`` is only read when the app sits behind ``trusted_hops``
    proxies; the entry appended by the outermost trusted proxy is used, never
    the client-supplied left end.
    """

    hops = settings.trusted_proxy_hops if trusted_hops is None else trusted_hops
    peer = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if hops <= 0 or not forwarded:
        return peer
    chain = [part.strip() for part in forwarded.split(",") if part.strip()]
    if not chain:
        return peer
    return chain[-hops] if len(chain) >= hops else chain[0]


def rate_limit(limiter_name: str, message: str) -> Callable[[Request], None]:
    """Build a dependency checking the limiter stored on ``app.state``."""

    def _dependency(request: Request) -> None:
        limiter: RateLimiter = getattr(request.app.state, limiter_name)
        if not limiter.hit(client_address(request)):
            raise RateLimited(message)

    return _dependency


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


def sign_session_token(claims: dict[str, Any], secret: str, ttl_seconds: int) -> str:
    """Return ``<payload>.<signature>`` with HMAC-SHA256 over the payload."""

    if not secret:
        raise ServiceUnavailable("Session signing is not configured")
    issued = int(time.time())
    payload = dict(claims, iat=issued, exp=issued + ttl_seconds)
    body = _b64encode(json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8"))
    signature = hmac.new(secret.encode("utf-8"), body.encode("ascii"), hashlib.sha256).digest()
    return f"{body}.{_b64encode(signature)}"


def verify_session_token(token: str, secret: str) -> dict[str, Any]:
    if not secret:
        raise ServiceUnavailable("Session signing is not configured")
    try:
        body, signature = token.split(".", 1)
        expected = hmac.new(secret.encode("utf-8"), body.encode("ascii"), hashlib.sha256).digest()
        if not hmac.compare_digest(expected, _b64decode(signature)):
            raise Unauthorized("Invalid session token")
        claims = json.loads(_b64decode(body))
    except (ValueError, UnicodeError) as exc:
        raise BadRequest("Malformed session token") from exc
    if claims.get("exp", 0) < time.time():
        raise Unauthorized("Session token expired")
    return claims


__all__ = [
    "secrets_match",
    "require_api_key",
    "require_admin_key",
    "require_cron_secret",
    "RateLimiter",
    "rate_limit",
    "client_address",
    "sign_session_token",
    "verify_session_token",
]
