"""Upload sinks for captured observations."""

from __future__ import annotations

import base64
import logging
import mimetypes
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class UploadError(RuntimeError):
    """The sink rejected the upload or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubContentsSink:
    """Creates one file per capture through the GitHub Contents API."""

    def __init__(
        self,
        repo: str,
        token: str,
        directory: str = "data",
        api_url: str = GITHUB_API_URL,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        if not repo or not token:
            raise UploadError("GitHub repository and token are required")
        self.repo = repo
        self.token = token
        self.directory = directory.strip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def upload(self, filename: str, content: str | bytes) -> dict[str, Any]:
        raw = content.encode("utf-8") if isinstance(content, str) else content
        path = f"{self.directory}/{filename}" if self.directory else filename
        url = f"{self.api_url}/repos/{self.repo}/contents/{path}"
        body = {
            "message": f"Add wildlife observation: {filename}",
            "content": base64.b64encode(raw).decode("ascii"),
        }
        headers = {"Authorization": f"token {self.token}", "Accept": "application/vnd.github+json"}
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            resp = client.put(url, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise UploadError(f"GitHub upload failed: {exc}") from exc
        finally:
            if self._client is None:
                client.close()
        if resp.status_code >= 400:
            raise UploadError(f"GitHub upload failed ({resp.status_code}): {resp.text[:200]}", resp.status_code)
        logger.info("Uploaded %s to %s", path, self.repo)
        return resp.json()


class BackendSink:
    """Posts observations to the tracker API."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.url = base_url.rstrip("/") + "/observations"
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def submit(self, record: dict[str, Any], photo: tuple[str, bytes] | None = None) -> dict[str, Any]:
        """Send ``record``; with a ``(filename, bytes)`` photo the request is multipart."""

        headers = {"x-api-key": self.api_key}
        client = self._client or httpx.Client(timeout=self.timeout)
        try:
            if photo is None:
                resp = client.post(self.url, json=record, headers=headers)
            else:
                filename, content = photo
                content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
                fields = {key: str(value) for key, value in record.items() if value is not None}
                resp = client.post(
                    self.url,
                    data=fields,
                    files={"image": (filename, content, content_type)},
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            raise UploadError(f"Backend submission failed: {exc}") from exc
        finally:
            if self._client is None:
                client.close()

        try:
            payload = resp.json()
        except ValueError:
            payload = {}
        if resp.status_code >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            raise UploadError(message or f"Backend returned {resp.status_code}", resp.status_code)
        return payload


__all__ = ["BackendSink", "GitHubContentsSink", "UploadError"]
