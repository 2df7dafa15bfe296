"""Session endpoints: uploads, generation, refinement and job polling."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, File, Form, Request, UploadFile

from fabric_muse.api.models import (
    GenerateRequest,
    GenerateResponse,
    JobStatusResponse,
    RefineAllRequest,
    RefineAllResponse,
    RefineRequest,
    RefineResponse,
    UploadResponse,
    UploadUrlRequest,
)
from fabric_muse.domain.errors import ValidationError
from fabric_muse.domain.sessions import ImageKind
from fabric_muse.services.jobs import RefinementTarget

if TYPE_CHECKING:
    from fabric_muse.containers import AppContainer

router = APIRouter(prefix="/api/session", tags=["session"])


def _container(request: Request) -> AppContainer:
    return request.app.state.container


@router.post("/upload")
async def upload(
    request: Request,
    swatch: Annotated[UploadFile | None, File()] = None,
    silhouette: Annotated[UploadFile | None, File()] = None,
    session_id: Annotated[UUID | None, Form(alias="sessionId")] = None,
    kind: Annotated[ImageKind, Form(alias="type")] = ImageKind.SWATCH,
) -> UploadResponse:
    """Store a swatch or silhouette file and attach it to a session."""
    file = silhouette if kind is ImageKind.SILHOUETTE else swatch
    if file is None:
        raise ValidationError("No file uploaded")
    content = await file.read()
    result = await _container(request).session_service.upload_image(
        content=content,
        filename=file.filename,
        content_type=file.content_type,
        kind=kind,
        session_id=session_id,
    )
    return UploadResponse(session_id=result.session_id, url=result.url)


@router.post("/upload-url")
async def upload_url(payload: UploadUrlRequest, request: Request) -> UploadResponse:
    """Store a reference image fetched from a remote URL."""
    result = await _container(request).session_service.upload_from_url(
        url=payload.url, kind=payload.type, session_id=payload.session_id
    )
    return UploadResponse(session_id=result.session_id, url=result.url)


@router.post("/generate")
async def generate(payload: GenerateRequest, request: Request) -> GenerateResponse:
    """Start a multi-pose generation job."""
    job = await _container(request).job_orchestrator.start_batch(
        payload.session_id,
        payload.prompt,
        options=payload.options,
        fan_out=payload.num_generations,
        consent=payload.consent,
    )
    return GenerateResponse(job_id=job.id)


@router.post("/refine")
async def refine(payload: RefineRequest, request: Request) -> RefineResponse:
    """Start a single-image refinement job."""
    job = await _container(request).job_orchestrator.start_refinement(
        payload.session_id, payload.image_url, payload.prompt, payload.index
    )
    return RefineResponse(job_id=job.id, index=payload.index)


@router.post("/refine-all")
async def refine_all(payload: RefineAllRequest, request: Request) -> RefineAllResponse:
    """Refine every image of the grid with the same prompt."""
    targets = [
        RefinementTarget(image_url=image.url, index=image.seed)
        for image in payload.images
    ]
    jobs = await _container(request).job_orchestrator.start_refinements(
        payload.session_id, payload.prompt, targets
    )
    return RefineAllResponse(
        jobs=[
            RefineResponse(job_id=job.id, index=target.index)
            for job, target in zip(jobs, targets, strict=True)
        ]
    )


@router.get("/job/{job_id}/status")
async def job_status(job_id: UUID, request: Request) -> JobStatusResponse:
    """Reconcile a job against the vendor and return its current images."""
    snapshot = await _container(request).job_orchestrator.reconcile(job_id)
    return JobStatusResponse.from_snapshot(snapshot)
