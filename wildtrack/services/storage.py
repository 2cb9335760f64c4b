"""Filesystem blob store for observation images."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path

from wildtrack.core.config import settings

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")
_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+)?;base64,", re.IGNORECASE)


@dataclass
class ImageUpload:
    content: bytes
    filename: str
    content_type: str | None = None


def sanitize_filename(name: str | None, default: str = "image.jpg") -> str:
    base = Path(name or "").name
    cleaned = _UNSAFE.sub("_", base).strip("._")[-200:]
    return cleaned or default


def decode_inline_image(encoded: str, filename: str | None = None) -> ImageUpload:
    """Decode a base64 image field, optionally given as a ``data:`` URL."""

    content_type = None
    match = _DATA_URL.match(encoded)
    if match:
        content_type = match.group("mime")
        encoded = encoded[match.end():]
    try:
        content = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError("image field is not valid base64") from exc
    if not content:
        raise ValueError("image field is empty")
    return ImageUpload(content=content, filename=sanitize_filename(filename), content_type=content_type)


class BlobStore:
    """Stores blobs below a root directory; names are relative POSIX paths."""

    def __init__(self, root: str | Path | None = None, max_bytes: int | None = None) -> None:
        self.root = Path(root or settings.blob_root)
        self.max_bytes = max_bytes if max_bytes is not None else settings.image_max_bytes

    def object_name(self, prefix: str, filename: str) -> str:
        return f"{prefix}/{int(time.time() * 1000)}_{sanitize_filename(filename)}"

    def put(self, name: str, content: bytes) -> str:
        if self.max_bytes and len(content) > self.max_bytes:
            raise ValueError(f"blob exceeds {self.max_bytes} bytes")
        path = self.resolve(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.info("Stored blob %s (%d bytes)", name, len(content))
        return name

    def resolve(self, name: str) -> Path:
        root = self.root.resolve()
        path = (root / name).resolve()
        if root not in path.parents:
            raise ValueError(f"blob name escapes the store: {name}")
        return path

    def delete(self, name: str) -> None:
        try:
            self.resolve(name).unlink(missing_ok=True)
        except (OSError, ValueError):
            logger.warning("Failed to remove blob %s", name, exc_info=True)

    def exists(self, name: str) -> bool:
        try:
            return self.resolve(name).is_file()
        except ValueError:
            return False


__all__ = ["BlobStore", "ImageUpload", "decode_inline_image", "sanitize_filename"]
