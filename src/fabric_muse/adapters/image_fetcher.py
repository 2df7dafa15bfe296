"""Remote image download client."""

from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx

from fabric_muse.domain.errors import ImageFetchError, UploadTooLargeError

DEFAULT_CONTENT_TYPE = "image/jpeg"

# httpx.InvalidURL is not an HTTPError subclass.
_FETCH_ERRORS = (httpx.HTTPError, httpx.InvalidURL)


@dataclass(frozen=True)
class FetchedImage:
    """Downloaded image bytes with their declared content type."""

    content: bytes
    content_type: str


@dataclass
class ImageStream:
    """Open streaming download; callers must ``close`` it when done."""

    content_type: str | None
    chunks: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]


class ImageFetcher(Protocol):
    """Interface for downloading arbitrary remote images."""

    async def fetch(self, url: str, max_bytes: int | None = None) -> FetchedImage:
        """Download a URL and return its bytes, refusing bodies over ``max_bytes``."""

    async def open_stream(self, url: str) -> ImageStream:
        """Open a streaming download for proxying."""


@dataclass
class HttpxImageFetcher(ImageFetcher):
    """Image fetcher implemented with httpx."""

    http_client: httpx.AsyncClient
    timeout_seconds: float = 30.0

    @classmethod
    def create(cls, timeout_seconds: float = 30.0) -> "HttpxImageFetcher":
        """Create a fetcher with a managed httpx session."""
        return cls(
            http_client=httpx.AsyncClient(follow_redirects=True),
            timeout_seconds=timeout_seconds,
        )

    async def fetch(self, url: str, max_bytes: int | None = None) -> FetchedImage:
        """Download an image into memory, stopping once it exceeds ``max_bytes``."""
        try:
            async with self.http_client.stream(
                "GET", url, timeout=self.timeout_seconds
            ) as response:
                response.raise_for_status()
                content = await _read_capped(response, url, max_bytes)
                content_type = _media_type(response.headers.get("content-type"))
        except _FETCH_ERRORS as exc:
            raise ImageFetchError(f"Failed to download {url}: {exc}") from exc
        return FetchedImage(
            content=content,
            content_type=content_type or DEFAULT_CONTENT_TYPE,
        )

    async def open_stream(self, url: str) -> ImageStream:
        """Start a streaming GET and hand back its body iterator."""
        try:
            request = self.http_client.build_request(
                "GET", url, timeout=self.timeout_seconds
            )
            response = await self.http_client.send(request, stream=True)
        except _FETCH_ERRORS as exc:
            raise ImageFetchError(f"Failed to download {url}: {exc}") from exc
        if response.is_error:
            await response.aclose()
            raise ImageFetchError(
                f"Failed to download {url}: HTTP {response.status_code}"
            )
        return ImageStream(
            content_type=response.headers.get("content-type"),
            chunks=response.aiter_bytes(),
            close=response.aclose,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


async def _read_capped(
    response: httpx.Response, url: str, max_bytes: int | None
) -> bytes:
    """Read a streamed body, failing early on a declared or actual oversize."""
    if max_bytes is None:
        return await response.aread()
    declared = response.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise _too_large(url, max_bytes)
    chunks: list[bytes] = []
    received = 0
    async for chunk in response.aiter_bytes():
        received += len(chunk)
        if received > max_bytes:
            raise _too_large(url, max_bytes)
        chunks.append(chunk)
    return b"".join(chunks)


def _too_large(url: str, max_bytes: int) -> UploadTooLargeError:
    limit_mb = max_bytes / (1024 * 1024)
    return UploadTooLargeError(f"Image at {url} exceeds the {limit_mb:g} MB limit")


def _media_type(header: str | None) -> str | None:
    """Strip parameters such as charset from a content-type header."""
    if not header:
        return None
    return header.split(";", maxsplit=1)[0].strip() or None
