"""Domain models for generation jobs and their images."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import NewType
from uuid import UUID

SlotIndex = NewType("SlotIndex", int)
"""Position of a task within a job; also the client-visible grid position."""


def slot_index(value: int, slot_count: int) -> SlotIndex:
    """Return ``value`` as a slot index, rejecting anything outside the grid."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Slot index must be an integer, got {value!r}")
    if not 0 <= value < slot_count:
        raise ValueError(f"Slot index {value} outside [0, {slot_count})")
    return SlotIndex(value)


class JobStatus(str, Enum):
    """Lifecycle state of a job."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in {JobStatus.COMPLETED, JobStatus.FAILED}


class JobKind(str, Enum):
    """Whether a job is a multi-pose batch or a single-slot refinement."""

    BATCH = "BATCH"
    REFINEMENT = "REFINEMENT"


@dataclass(frozen=True)
class JobRecord:
    """Represents one batch generation or refinement request.

    ``task_ids`` is ordered: the position of a task id is its slot. Refinement
    jobs hold a single task whose image lands at ``target_index``.
    """

    id: UUID
    session_id: UUID
    status: JobStatus
    kind: JobKind
    task_ids: tuple[str, ...]
    created_at: datetime
    target_index: int | None = None
    error: str | None = None

    def seed_for(self, position: int) -> SlotIndex:
        """Return the image seed for the task at ``position``."""
        checked = slot_index(position, len(self.task_ids))
        if self.kind is JobKind.REFINEMENT and self.target_index is not None:
            return SlotIndex(self.target_index)
        return checked


@dataclass(frozen=True)
class ImageRecord:
    """A completed, re-hosted generated image."""

    id: UUID
    job_id: UUID
    url: str
    seed: int


@dataclass(frozen=True)
class JobSnapshot:
    """Job state as seen by a polling client."""

    job_id: UUID
    status: JobStatus
    images: list[ImageRecord]
    error: str | None = None
