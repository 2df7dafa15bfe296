"""Object storage gateway with re-hosting of remote images."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from fabric_muse.adapters.image_fetcher import ImageFetcher
from fabric_muse.domain.errors import FabricMuseError

DEFAULT_FILENAME = "uploaded_image"
ALLOWED_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "webp", "gif", "heic", "pdf"})

_WHITESPACE = re.compile(r"\s+")
_DISALLOWED = re.compile(r"[^A-Za-z0-9.\-_]")
_REPEATED_UNDERSCORES = re.compile(r"_{2,}")

_logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    """Interface for blob storage with public URLs."""

    def put(self, bucket: str, key: str, content: bytes, content_type: str) -> str:
        """Upsert a blob and return its public URL."""

    def get_public_url(self, bucket: str, key: str) -> str:
        """Return the public URL for a stored key."""


@dataclass
class StorageService:
    """Stores uploads and re-hosts vendor results under our own bucket."""

    object_store: ObjectStore
    fetcher: ImageFetcher
    generated_bucket: str = "generations"

    async def put(
        self, bucket: str, key: str, content: bytes, content_type: str
    ) -> str:
        """Store bytes without blocking the event loop and return the public URL."""
        return await asyncio.to_thread(
            self.object_store.put, bucket, key, content, content_type
        )

    async def fetch_and_rehost(self, source_url: str, destination_key: str) -> str:
        """Copy a remote image into storage, falling back to the source URL."""
        try:
            fetched = await self.fetcher.fetch(source_url)
            return await self.put(
                self.generated_bucket,
                destination_key,
                fetched.content,
                fetched.content_type,
            )
        except FabricMuseError:
            _logger.warning(
                "Re-hosting failed, serving vendor URL",
                extra={"source_url": source_url, "key": destination_key},
                exc_info=True,
            )
            return source_url


def sanitize_filename(filename: str) -> str:
    """Return a storage-safe version of a user-supplied filename."""
    base, ext = filename, ""
    stem, dot, suffix = filename.rpartition(".")
    if dot and suffix.lower() in ALLOWED_EXTENSIONS:
        base, ext = stem, suffix

    cleaned = _WHITESPACE.sub("_", base)
    cleaned = _DISALLOWED.sub("_", cleaned)
    cleaned = _REPEATED_UNDERSCORES.sub("_", cleaned)
    cleaned = cleaned.strip("_") or DEFAULT_FILENAME
    return f"{cleaned}.{ext}" if ext else cleaned
