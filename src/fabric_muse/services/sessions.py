"""Session lifecycle: swatch and silhouette uploads."""

import logging
import time
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlparse
from uuid import UUID

from fabric_muse.adapters.image_fetcher import ImageFetcher
from fabric_muse.domain.errors import (
    NotFoundError,
    UploadTooLargeError,
    ValidationError,
)
from fabric_muse.domain.sessions import ImageKind, SessionRecord, UploadResult
from fabric_muse.services.storage import StorageService, sanitize_filename

_DEFAULT_URL_FILENAME = "image.jpg"

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for working sessions."""

    def create_session(
        self, swatch_url: str, silhouette_url: str | None
    ) -> SessionRecord:
        """Create a new session and return it."""

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""

    def attach_image(
        self, session_id: UUID, kind: ImageKind, url: str
    ) -> SessionRecord | None:
        """Set the swatch or silhouette URL; return None if the session is unknown."""

    def save_generation_settings(
        self,
        session_id: UUID,
        prompt_text: str,
        options: dict[str, object],
        consent: bool,
    ) -> None:
        """Persist the prompt and options used for a generation."""


@dataclass
class SessionService:
    """Accepts reference images and keeps the session record in sync."""

    session_repository: SessionRepository
    storage_service: StorageService
    fetcher: ImageFetcher
    buckets: dict[ImageKind, str]
    max_upload_bytes: int = 8 * 1024 * 1024

    def get_session(self, session_id: UUID) -> SessionRecord:
        """Return a session or raise NotFoundError."""
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    async def upload_image(  # noqa: PLR0913
        self,
        *,
        content: bytes,
        filename: str | None,
        content_type: str | None,
        kind: ImageKind,
        session_id: UUID | None = None,
    ) -> UploadResult:
        """Store an uploaded file and attach it to a (possibly new) session."""
        if not content:
            raise ValidationError("No file uploaded")
        self._check_size(len(content))
        if session_id is not None:
            self.get_session(session_id)
        key = _storage_key(filename or "")
        url = await self.storage_service.put(
            self.buckets[kind], key, content, content_type or "application/octet-stream"
        )
        return self._record_upload(kind, url, session_id)

    async def upload_from_url(
        self, *, url: str, kind: ImageKind, session_id: UUID | None = None
    ) -> UploadResult:
        """Download a remote image, store it, and attach it to a session."""
        if not url.strip():
            raise ValidationError("URL is required")
        if session_id is not None:
            self.get_session(session_id)
        fetched = await self.fetcher.fetch(url, max_bytes=self.max_upload_bytes)
        self._check_size(len(fetched.content))
        key = _storage_key(_filename_from_url(url))
        stored_url = await self.storage_service.put(
            self.buckets[kind], key, fetched.content, fetched.content_type
        )
        return self._record_upload(kind, stored_url, session_id)

    def _record_upload(
        self, kind: ImageKind, url: str, session_id: UUID | None
    ) -> UploadResult:
        if session_id is None:
            if kind is ImageKind.SILHOUETTE:
                session = self.session_repository.create_session(
                    swatch_url="", silhouette_url=url
                )
            else:
                session = self.session_repository.create_session(
                    swatch_url=url, silhouette_url=None
                )
            _logger.info(
                "Created session", extra={"session_id": str(session.id), "kind": kind}
            )
            return UploadResult(session_id=session.id, url=url)

        updated = self.session_repository.attach_image(session_id, kind, url)
        if updated is None:
            raise NotFoundError("Session not found")
        return UploadResult(session_id=updated.id, url=url)

    def _check_size(self, size: int) -> None:
        if size > self.max_upload_bytes:
            limit_mb = self.max_upload_bytes / (1024 * 1024)
            raise UploadTooLargeError(f"File exceeds the {limit_mb:g} MB limit")


def _storage_key(filename: str) -> str:
    """Build a unique, storage-safe object key."""
    return f"{int(time.time() * 1000)}_{sanitize_filename(filename)}"


def _filename_from_url(url: str) -> str:
    path = urlparse(url).path
    name = path.rsplit("/", maxsplit=1)[-1]
    return name or _DEFAULT_URL_FILENAME
