"""Models for remote image-generation tasks."""

from dataclasses import dataclass
from enum import Enum


class TaskState(str, Enum):
    """Normalized remote task state."""

    PENDING = "pending"
    SUCCESS = "success"
    FAIL = "fail"


@dataclass(frozen=True)
class TaskStatus:
    """Current state of one remote generation task."""

    task_id: str
    state: TaskState
    result_urls: tuple[str, ...] = ()
    failure_message: str | None = None

    @property
    def first_result_url(self) -> str | None:
        return self.result_urls[0] if self.result_urls else None


@dataclass(frozen=True)
class GenerationOptions:
    """Fixed output policy sent with every generation task."""

    model: str = "nano-banana-pro"
    aspect_ratio: str = "3:4"
    resolution: str = "1K"
    output_format: str = "png"
