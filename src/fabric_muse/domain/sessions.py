"""Domain models for working sessions."""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID


class ImageKind(str, Enum):
    """Kind of user-supplied reference image."""

    SWATCH = "swatch"
    SILHOUETTE = "silhouette"


@dataclass(frozen=True)
class SessionRecord:
    """Represents one user's working set."""

    id: UUID
    swatch_url: str
    silhouette_url: str | None = None
    prompt_text: str | None = None
    options: dict[str, object] = field(default_factory=dict)
    consent: bool = False


@dataclass(frozen=True)
class UploadResult:
    """Outcome of storing a swatch or silhouette."""

    session_id: UUID
    url: str
