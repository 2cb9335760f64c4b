"""Shared logging configuration for the API and the field client."""

from __future__ import annotations

import logging
import os
from collections import deque
from datetime import datetime, timezone
from typing import Iterable, Optional

from pythonjsonlogger import jsonlogger

_CONFIGURED = False
_LOG_BUFFER: deque[dict[str, str]] = deque(maxlen=200)
_REDACTED = "***"


class _ServiceNameFilter(logging.Filter):
    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # pragma: no cover - trivial
        record.service = self.service_name
        return True


class SecretRedactionFilter(logging.Filter):
    """Mask shared secrets that end up in log lines.

    The FIRMS map key travels in the URL path and httpx logs every request URL,
    so the rendered message is rewritten before any handler sees it.
    """

    def __init__(self, secrets: Iterable[str]) -> None:
        super().__init__()
        self.secrets = sorted({s for s in secrets if s and len(s) >= 4}, key=len, reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        if not self.secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in self.secrets:
            redacted = redacted.replace(secret, _REDACTED)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class _BufferHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:  # pragma: no cover - trivial
        try:
            timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
            _LOG_BUFFER.appendleft(
                {
                    "time": timestamp,
                    "level": record.levelname,
                    "name": record.name,
                    "message": record.getMessage(),
                }
            )
        except Exception:
            # Never break logging for buffer failures
            return


def _configured_secrets() -> list[str]:
    from wildtrack.core.config import settings

    return [
        settings.api_key,
        settings.admin_api_key,
        settings.cron_secret,
        settings.session_secret,
        settings.firms_map_key,
        settings.emailjs_private_key,
    ]


def setup_logging(service_name: Optional[str] = None, secrets: Iterable[str] | None = None) -> None:
    """Configure root logging with a JSON formatter, secret masking and a ring buffer."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    service = service_name or os.getenv("SERVICE_NAME", "wildtrack")
    redaction = SecretRedactionFilter(_configured_secrets() if secrets is None else secrets)

    handler = logging.StreamHandler()
    handler.setFormatter(
        jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(service)s")
    )
    handler.addFilter(_ServiceNameFilter(service))
    handler.addFilter(redaction)

    buffer_handler = _BufferHandler()
    buffer_handler.addFilter(redaction)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.addHandler(buffer_handler)
    root.setLevel(log_level)
    logging.captureWarnings(True)
    _CONFIGURED = True


def get_log_buffer(limit: int = 100, level: str | None = None) -> list[dict[str, str]]:
    entries = list(_LOG_BUFFER)
    if level:
        entries = [entry for entry in entries if entry["level"] == level.upper()]
    return entries[:limit]


__all__ = ["setup_logging", "get_log_buffer", "SecretRedactionFilter"]
