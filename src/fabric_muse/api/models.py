"""Pydantic models for the HTTP API payloads."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from fabric_muse.domain.jobs import JobSnapshot, JobStatus
from fabric_muse.domain.prompts import MAX_FAN_OUT, PromptOptions
from fabric_muse.domain.sessions import ImageKind


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class UploadResponse(_CamelModel):
    """Result of a swatch or silhouette upload."""

    ok: bool = True
    session_id: UUID = Field(serialization_alias="sessionId")
    url: str


class UploadUrlRequest(_CamelModel):
    """Upload a reference image from a remote URL."""

    url: str
    session_id: UUID | None = Field(default=None, alias="sessionId")
    type: ImageKind = ImageKind.SWATCH


class GenerateRequest(_CamelModel):
    """Start a multi-pose generation batch."""

    session_id: UUID = Field(alias="sessionId")
    prompt: str
    options: dict[str, object] = Field(default_factory=dict)
    num_generations: int = Field(
        default=MAX_FAN_OUT, ge=1, le=MAX_FAN_OUT, alias="numGenerations"
    )
    consent: bool = True


class GenerateResponse(_CamelModel):
    ok: bool = True
    job_id: UUID = Field(serialization_alias="jobId")


class RefineRequest(_CamelModel):
    """Refine one image of the result grid in place."""

    session_id: UUID = Field(alias="sessionId")
    image_url: str = Field(alias="imageUrl")
    prompt: str
    index: int = Field(default=0, ge=0, lt=MAX_FAN_OUT)


class RefineResponse(_CamelModel):
    ok: bool = True
    job_id: UUID = Field(serialization_alias="jobId")
    index: int


class GridImage(BaseModel):
    """An image at a position of the result grid."""

    url: str
    seed: int = Field(ge=0)


class RefineAllRequest(_CamelModel):
    """Refine every listed image with one prompt."""

    session_id: UUID = Field(alias="sessionId")
    prompt: str
    images: list[GridImage] = Field(min_length=1, max_length=MAX_FAN_OUT)


class RefineAllResponse(BaseModel):
    ok: bool = True
    jobs: list[RefineResponse]


class JobStatusResponse(BaseModel):
    """Polling view of a job; ``images`` fills in by seed until COMPLETED."""

    status: JobStatus
    images: list[GridImage]
    error: str | None = None

    @classmethod
    def from_snapshot(cls, snapshot: JobSnapshot) -> "JobStatusResponse":
        return cls(
            status=snapshot.status,
            images=[
                GridImage(url=image.url, seed=image.seed) for image in snapshot.images
            ],
            error=snapshot.error,
        )


class PromptRequest(BaseModel):
    options: PromptOptions = Field(default_factory=PromptOptions)


class PromptResponse(BaseModel):
    prompt: str


class ArchiveRequest(BaseModel):
    images: list[GridImage] = Field(min_length=1)
