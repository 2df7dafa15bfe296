"""Job orchestration: fan-out to the generation vendor and reconciliation.

A job is created PENDING, moves to PROCESSING once every remote task has been
created, and becomes COMPLETED when each task position has an image. Polling is
driven entirely by callers of ``reconcile``; nothing runs in the background.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol
from uuid import UUID

from fabric_muse.domain.errors import (
    FabricMuseError,
    NotFoundError,
    RemoteServiceError,
    ValidationError,
)
from fabric_muse.domain.generation import TaskState, TaskStatus
from fabric_muse.domain.jobs import (
    ImageRecord,
    JobKind,
    JobRecord,
    JobSnapshot,
    JobStatus,
    SlotIndex,
    slot_index,
)
from fabric_muse.domain.prompts import MAX_FAN_OUT, pose_prompts, refinement_prompt
from fabric_muse.domain.sessions import SessionRecord
from fabric_muse.services.sessions import SessionRepository
from fabric_muse.services.storage import StorageService

TIMEOUT_ERROR = "Generation timed out"
SIBLING_FAILED_ERROR = "Another refinement in the same request failed"

_logger = logging.getLogger(__name__)


class GenerationClient(Protocol):
    """Interface for the remote image-generation vendor."""

    async def create_task(self, prompt: str, image_urls: Sequence[str]) -> str:
        """Submit a generation task and return the vendor task id."""

    async def get_task_status(self, task_id: str) -> TaskStatus:
        """Return the current state of a task."""


class JobRepository(Protocol):
    """Persistence interface for jobs."""

    def create_job(
        self, session_id: UUID, kind: JobKind, target_index: int | None
    ) -> JobRecord:
        """Create a PENDING job with no task ids."""

    def get_job(self, job_id: UUID) -> JobRecord | None:
        """Return a job by id, if present."""

    def mark_processing(self, job_id: UUID, task_ids: Sequence[str]) -> JobRecord:
        """Record task ids and move the job to PROCESSING."""

    def mark_completed(self, job_id: UUID) -> None:
        """Move a non-terminal job to COMPLETED."""

    def mark_failed(self, job_id: UUID, error: str) -> None:
        """Move a non-terminal job to FAILED."""


class ImageRepository(Protocol):
    """Persistence interface for generated images."""

    def list_images(self, job_id: UUID) -> list[ImageRecord]:
        """Return a job's images ordered by seed."""

    def create_image(self, job_id: UUID, url: str, seed: int) -> ImageRecord | None:
        """Create an image; return None if the (job, seed) slot is already taken."""


@dataclass(frozen=True)
class RefinementTarget:
    """An image in the client's grid to refine in place."""

    image_url: str
    index: int


@dataclass
class JobOrchestrator:
    """Creates generation jobs and reconciles them against remote task state."""

    session_repository: SessionRepository
    job_repository: JobRepository
    image_repository: ImageRepository
    generation_client: GenerationClient
    storage_service: StorageService
    output_format: str = "png"
    job_timeout_seconds: int = 900

    async def start_batch(  # noqa: PLR0913
        self,
        session_id: UUID,
        prompt: str,
        options: dict[str, object] | None = None,
        fan_out: int = MAX_FAN_OUT,
        consent: bool = True,
    ) -> JobRecord:
        """Fan a prompt out into one remote task per pose."""
        if not prompt.strip():
            raise ValidationError("Session ID and prompt are required")
        if not 1 <= fan_out <= MAX_FAN_OUT:
            raise ValidationError(
                f"Number of generations must be between 1 and {MAX_FAN_OUT}"
            )
        if not consent:
            raise ValidationError("Consent is required to generate images")
        session = self._require_session(session_id)
        if not session.swatch_url:
            raise ValidationError("Upload a fabric swatch before generating")

        self.session_repository.save_generation_settings(
            session_id, prompt_text=prompt, options=options or {}, consent=consent
        )
        job = self.job_repository.create_job(
            session_id, kind=JobKind.BATCH, target_index=None
        )
        prompts = pose_prompts(
            prompt, fan_out, has_silhouette=bool(session.silhouette_url)
        )
        return await self._submit(job, prompts, _reference_images(session))

    async def start_refinement(
        self, session_id: UUID, base_image_url: str, prompt: str, target_index: int
    ) -> JobRecord:
        """Re-render one grid slot anchored on its latest image."""
        if not base_image_url.strip() or not prompt.strip():
            raise ValidationError("Session ID, Image URL, and prompt are required")
        try:
            target = slot_index(target_index, MAX_FAN_OUT)
        except (TypeError, ValueError) as exc:
            raise ValidationError(str(exc)) from exc
        session = self._require_session(session_id)
        if not session.swatch_url:
            raise ValidationError("Upload a fabric swatch before refining")

        job = self.job_repository.create_job(
            session_id, kind=JobKind.REFINEMENT, target_index=target
        )
        has_silhouette = bool(session.silhouette_url)
        references = [base_image_url, *_reference_images(session)]
        return await self._submit(
            job, [refinement_prompt(prompt, has_silhouette)], references
        )

    async def start_refinements(
        self, session_id: UUID, prompt: str, targets: Sequence[RefinementTarget]
    ) -> list[JobRecord]:
        """Refine every given slot with the same prompt, one job per slot."""
        if not targets:
            raise ValidationError("At least one image is required")
        indexes = [target.index for target in targets]
        if len(set(indexes)) != len(indexes):
            raise ValidationError("Each grid position can only be refined once")
        for index in indexes:
            try:
                slot_index(index, MAX_FAN_OUT)
            except (TypeError, ValueError) as exc:
                raise ValidationError(str(exc)) from exc

        results = await asyncio.gather(
            *(
                self.start_refinement(
                    session_id, target.image_url, prompt, target.index
                )
                for target in targets
            ),
            return_exceptions=True,
        )
        started = [result for result in results if isinstance(result, JobRecord)]
        failures = [result for result in results if isinstance(result, BaseException)]
        if not failures:
            return started
        # Started jobs are never returned to the caller once any sibling fails.
        for job in started:
            self._abandon(job.id, job.task_ids, SIBLING_FAILED_ERROR)
        raise failures[0]

    async def reconcile(self, job_id: UUID) -> JobSnapshot:
        """Advance a job from remote task state; safe to call repeatedly."""
        job = self._require_job(job_id)
        images = self.image_repository.list_images(job.id)
        if job.status.is_terminal:
            return JobSnapshot(job.id, job.status, images, job.error)
        if not job.task_ids:
            if self._is_expired(job):
                return self._expire(job, images)
            return JobSnapshot(job.id, job.status, images, job.error)

        resolved = {image.seed for image in images}
        unresolved: list[tuple[SlotIndex, str]] = []
        for position, task_id in enumerate(job.task_ids):
            seed = job.seed_for(position)
            if seed not in resolved:
                unresolved.append((seed, task_id))
        await asyncio.gather(
            *(self._resolve_slot(job, seed, task_id) for seed, task_id in unresolved)
        )

        images = self.image_repository.list_images(job.id)
        if len(images) >= len(job.task_ids):
            self.job_repository.mark_completed(job.id)
            stored = self._require_job(job.id)
            if stored.status is JobStatus.COMPLETED:
                _logger.info("Job completed", extra={"job_id": str(job.id)})
            return JobSnapshot(job.id, stored.status, images, stored.error)
        if self._is_expired(job):
            return self._expire(job, images)
        return JobSnapshot(job.id, JobStatus.PROCESSING, images)

    def get_snapshot(self, job_id: UUID) -> JobSnapshot:
        """Return stored job state without contacting the vendor."""
        job = self._require_job(job_id)
        images = self.image_repository.list_images(job.id)
        return JobSnapshot(job.id, job.status, images, job.error)

    async def _submit(
        self, job: JobRecord, prompts: list[str], references: list[str]
    ) -> JobRecord:
        """Create every remote task; record ids only if all of them succeed."""
        results = await asyncio.gather(
            *(self.generation_client.create_task(text, references) for text in prompts),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        created = [result for result in results if isinstance(result, str)]
        if not failures:
            try:
                processing = self.job_repository.mark_processing(job.id, created)
            except Exception as exc:
                self._abandon(job.id, created, str(exc))
                raise
            _logger.info(
                "Job submitted",
                extra={"job_id": str(job.id), "task_ids": created},
            )
            return processing

        error = failures[0]
        if not isinstance(error, Exception):
            raise error
        self._abandon(job.id, created, str(error))
        if isinstance(error, FabricMuseError):
            raise error
        raise RemoteServiceError(str(error)) from error

    def _abandon(self, job_id: UUID, task_ids: Sequence[str], error: str) -> None:
        """Fail a job whose remote tasks will never be reconciled."""
        if task_ids:
            _logger.warning(
                "Discarding remote tasks of an abandoned job",
                extra={"job_id": str(job_id), "task_ids": list(task_ids)},
            )
        self.job_repository.mark_failed(job_id, error)
        _logger.error(
            "Job submission failed", extra={"job_id": str(job_id), "error": error}
        )

    async def _resolve_slot(
        self, job: JobRecord, seed: SlotIndex, task_id: str
    ) -> None:
        """Poll one task and materialize its image; failures stay local."""
        try:
            status = await self.generation_client.get_task_status(task_id)
            if status.state is TaskState.FAIL:
                _logger.warning(
                    "Remote task failed",
                    extra={
                        "job_id": str(job.id),
                        "task_id": task_id,
                        "reason": status.failure_message,
                    },
                )
                return
            source_url = status.first_result_url
            if status.state is not TaskState.SUCCESS or source_url is None:
                return
            key = f"generated/{job.id}_{seed}.{self.output_format}"
            url = await self.storage_service.fetch_and_rehost(source_url, key)
            created = self.image_repository.create_image(job.id, url, seed)
            if created is None:
                _logger.info(
                    "Slot already resolved by a concurrent poll",
                    extra={"job_id": str(job.id), "seed": seed},
                )
        except Exception:
            _logger.exception(
                "Error polling task", extra={"job_id": str(job.id), "task_id": task_id}
            )

    def _is_expired(self, job: JobRecord) -> bool:
        if self.job_timeout_seconds <= 0:
            return False
        deadline = job.created_at + timedelta(seconds=self.job_timeout_seconds)
        return datetime.now(tz=UTC) >= deadline

    def _expire(self, job: JobRecord, images: list[ImageRecord]) -> JobSnapshot:
        """Fail an overdue job and report whatever state the store ended up in."""
        self.job_repository.mark_failed(job.id, TIMEOUT_ERROR)
        stored = self._require_job(job.id)
        if stored.status is JobStatus.FAILED:
            _logger.warning(
                "Job timed out",
                extra={"job_id": str(job.id), "resolved": len(images)},
            )
        return JobSnapshot(job.id, stored.status, images, stored.error)

    def _require_session(self, session_id: UUID) -> SessionRecord:
        session = self.session_repository.get_session(session_id)
        if session is None:
            raise NotFoundError("Session not found")
        return session

    def _require_job(self, job_id: UUID) -> JobRecord:
        job = self.job_repository.get_job(job_id)
        if job is None:
            raise NotFoundError("Job not found")
        return job


def _reference_images(session: SessionRecord) -> list[str]:
    """Swatch first, then the silhouette when one was uploaded."""
    return [url for url in (session.swatch_url, session.silhouette_url) if url]
