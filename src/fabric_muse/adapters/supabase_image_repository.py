"""Supabase-backed generated image repository."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from fabric_muse.domain.jobs import ImageRecord
from fabric_muse.services.jobs import ImageRepository


@dataclass
class SupabaseImageRepository(ImageRepository):
    """Supabase implementation for generated images.

    The ``images`` table has a unique constraint on ``(job_id, seed)``; inserts
    ignore duplicates so concurrent polls cannot create two images for a slot.
    """

    client: Client

    def list_images(self, job_id: UUID) -> list[ImageRecord]:
        """Return a job's images ordered by seed."""
        response = (
            self.client.table("images")
            .select("id, job_id, url, seed")
            .eq("job_id", str(job_id))
            .order("seed")
            .execute()
        )
        return [_to_record(row) for row in response.data or []]

    def create_image(self, job_id: UUID, url: str, seed: int) -> ImageRecord | None:
        """Insert an image unless its slot is already filled."""
        response = (
            self.client.table("images")
            .upsert(
                {"job_id": str(job_id), "url": url, "seed": seed},
                on_conflict="job_id,seed",
                ignore_duplicates=True,
            )
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])


def _to_record(row: dict[str, object]) -> ImageRecord:
    return ImageRecord(
        id=UUID(str(row["id"])),
        job_id=UUID(str(row["job_id"])),
        url=str(row["url"]),
        seed=int(row["seed"]),
    )
