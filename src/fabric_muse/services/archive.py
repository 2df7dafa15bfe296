"""ZIP packaging of rendered images."""

import asyncio
import io
import logging
import zipfile
from collections.abc import Sequence
from dataclasses import dataclass

from fabric_muse.adapters.image_fetcher import FetchedImage, ImageFetcher
from fabric_muse.domain.errors import FabricMuseError, ValidationError
from fabric_muse.domain.prompts import POSE_LABELS

ARCHIVE_FILENAME = "fabricviz-images.zip"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveEntry:
    """An image to include, keyed by its grid position."""

    seed: int
    url: str


@dataclass
class ArchiveService:
    """Builds a downloadable ZIP of a result grid."""

    fetcher: ImageFetcher

    async def build_archive(self, entries: Sequence[ArchiveEntry]) -> bytes:
        """Fetch every image and return ZIP bytes; unreachable images are skipped."""
        if not entries:
            raise ValidationError("No images to download")
        fetched = await asyncio.gather(*(self._fetch(entry) for entry in entries))

        buffer = io.BytesIO()
        written = 0
        with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            used_names: set[str] = set()
            for entry, image in zip(entries, fetched, strict=True):
                if image is None:
                    continue
                name = _entry_name(entry.seed, used_names)
                used_names.add(name)
                zf.writestr(name, image.content)
                written += 1
        if written == 0:
            raise ValidationError("None of the images could be downloaded")
        return buffer.getvalue()

    async def _fetch(self, entry: ArchiveEntry) -> FetchedImage | None:
        try:
            return await self.fetcher.fetch(entry.url)
        except FabricMuseError:
            _logger.warning(
                "Failed to download image for archive",
                extra={"url": entry.url, "seed": entry.seed},
                exc_info=True,
            )
            return None


def _entry_name(seed: int, used: set[str]) -> str:
    """Return ``fabricviz-<pose>.png`` (suffixed when a name repeats)."""
    label = POSE_LABELS[seed] if 0 <= seed < len(POSE_LABELS) else f"image-{seed}"
    name = f"fabricviz-{label}.png"
    counter = 2
    while name in used:
        name = f"fabricviz-{label}-{counter}.png"
        counter += 1
    return name
