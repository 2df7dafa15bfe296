"""Supabase Storage-backed object store."""

from dataclasses import dataclass

from supabase import Client

from fabric_muse.domain.errors import StorageError
from fabric_muse.services.storage import ObjectStore


@dataclass
class SupabaseObjectStore(ObjectStore):
    """Supabase Storage implementation for public image buckets."""

    client: Client

    def put(self, bucket: str, key: str, content: bytes, content_type: str) -> str:
        """Upload (or overwrite) a blob and return its public URL."""
        try:
            self.client.storage.from_(bucket).upload(
                path=key,
                file=content,
                file_options={"content-type": content_type, "upsert": "true"},
            )
        except Exception as exc:
            raise StorageError(f"Failed to upload {bucket}/{key}: {exc}") from exc
        return self.get_public_url(bucket, key)

    def get_public_url(self, bucket: str, key: str) -> str:
        """Return the public URL for a stored key."""
        url = self.client.storage.from_(bucket).get_public_url(key)
        return url.rstrip("?")
