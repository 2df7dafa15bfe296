"""Supabase-backed job repository."""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

from supabase import Client

from fabric_muse.domain.jobs import JobKind, JobRecord, JobStatus
from fabric_muse.services.jobs import JobRepository

_COLUMNS = "id, session_id, status, kind, task_ids, target_index, error, created_at"
_OPEN_STATUSES = [JobStatus.PENDING.value, JobStatus.PROCESSING.value]


@dataclass
class SupabaseJobRepository(JobRepository):
    """Supabase implementation for generation jobs."""

    client: Client

    def create_job(
        self, session_id: UUID, kind: JobKind, target_index: int | None
    ) -> JobRecord:
        """Create a PENDING job row and return it."""
        response = (
            self.client.table("jobs")
            .insert(
                {
                    "session_id": str(session_id),
                    "status": JobStatus.PENDING.value,
                    "kind": kind.value,
                    "task_ids": [],
                    "target_index": target_index,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create job")
        return _to_record(response.data[0])

    def get_job(self, job_id: UUID) -> JobRecord | None:
        """Return a job by id, if present."""
        response = (
            self.client.table("jobs")
            .select(_COLUMNS)
            .eq("id", str(job_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _to_record(response.data[0])

    def mark_processing(self, job_id: UUID, task_ids: Sequence[str]) -> JobRecord:
        """Store task ids and move the job to PROCESSING."""
        response = (
            self.client.table("jobs")
            .update(
                {
                    "task_ids": list(task_ids),
                    "status": JobStatus.PROCESSING.value,
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("id", str(job_id))
            .eq("status", JobStatus.PENDING.value)
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to record job tasks")
        return _to_record(response.data[0])

    def mark_completed(self, job_id: UUID) -> None:
        """Complete a job unless it already reached a terminal state."""
        self._finish(job_id, {"status": JobStatus.COMPLETED.value})

    def mark_failed(self, job_id: UUID, error: str) -> None:
        """Fail a job unless it already reached a terminal state."""
        self._finish(job_id, {"status": JobStatus.FAILED.value, "error": error})

    def _finish(self, job_id: UUID, payload: dict[str, object]) -> None:
        self.client.table("jobs").update(
            {**payload, "updated_at": datetime.now(tz=UTC).isoformat()}
        ).eq("id", str(job_id)).in_("status", _OPEN_STATUSES).execute()


def _to_record(row: dict[str, object]) -> JobRecord:
    target_index = row.get("target_index")
    return JobRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        status=JobStatus(row["status"]),
        kind=JobKind(row.get("kind") or JobKind.BATCH.value),
        task_ids=tuple(str(task_id) for task_id in row.get("task_ids") or []),
        created_at=_parse_timestamp(row.get("created_at")),
        target_index=int(target_index) if target_index is not None else None,
        error=row.get("error"),
    )


def _parse_timestamp(value: object) -> datetime:
    if not isinstance(value, str):
        return datetime.now(tz=UTC)
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed
