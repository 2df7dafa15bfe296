"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from fabric_muse.domain.sessions import ImageKind, SessionRecord
from fabric_muse.services.sessions import SessionRepository

_COLUMNS = "id, swatch_url, silhouette_url, prompt_text, options, consent"
_IMAGE_COLUMNS = {
    ImageKind.SWATCH: "swatch_url",
    ImageKind.SILHOUETTE: "silhouette_url",
}


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for working sessions."""

    client: Client

    def create_session(
        self, swatch_url: str, silhouette_url: str | None
    ) -> SessionRecord:
        """Create a session row and return it."""
        response = (
            self.client.table("sessions")
            .insert({"swatch_url": swatch_url, "silhouette_url": silhouette_url})
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return _to_record(response.data[0])

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    def attach_image(
        self, session_id: UUID, kind: ImageKind, url: str
    ) -> SessionRecord | None:
        """Set the swatch or silhouette URL on an existing session."""
        response = (
            self.client.table("sessions")
            .update(
                {
                    _IMAGE_COLUMNS[kind]: url,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(session_id))
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    def save_generation_settings(
        self,
        session_id: UUID,
        prompt_text: str,
        options: dict[str, object],
        consent: bool,
    ) -> None:
        """Persist prompt text, options and consent."""
        self.client.table("sessions").update(
            {
                "prompt_text": prompt_text,
                "options": options,
                "consent": consent,
                "updated_at": datetime.now(tz=UTC).isoformat(),
            }
        ).eq("id", str(session_id)).execute()


def _to_record(row: dict[str, object]) -> SessionRecord:
    return SessionRecord(
        id=UUID(str(row["id"])),
        swatch_url=str(row.get("swatch_url") or ""),
        silhouette_url=row.get("silhouette_url") or None,
        prompt_text=row.get("prompt_text"),
        options=row.get("options") or {},
        consent=bool(row.get("consent", False)),
    )
