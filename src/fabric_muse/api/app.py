"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response, StreamingResponse
from starlette.background import BackgroundTask

from fabric_muse.api.models import (
    ArchiveRequest,
    PromptRequest,
    PromptResponse,
)
from fabric_muse.api.sessions import router as session_router
from fabric_muse.app_logging import configure_logging
from fabric_muse.config import parse_allowed_origins
from fabric_muse.containers import AppContainer
from fabric_muse.domain.errors import (
    INSUFFICIENT_CREDITS_MESSAGE,
    FabricMuseError,
    RemoteServiceError,
    ValidationError,
)
from fabric_muse.domain.prompts import (
    MAX_FAN_OUT,
    POSE_LABELS,
    PromptOptions,
    build_prompt,
    option_choices,
)
from fabric_muse.services.archive import ARCHIVE_FILENAME, ArchiveEntry


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_allowed_origins(container.settings.cors_allowed_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(session_router)

    @app.exception_handler(FabricMuseError)
    async def handle_app_error(request: Request, exc: FabricMuseError) -> JSONResponse:
        status_code = exc.status_code
        message = exc.message
        insufficient_credits = (
            isinstance(exc, RemoteServiceError) and exc.insufficient_credits
        )
        if insufficient_credits:
            status_code = 402
            message = INSUFFICIENT_CREDITS_MESSAGE
        if status_code >= 500:
            logger.error(
                "Request failed",
                extra={"path": request.url.path, "error": exc.message},
            )
        return JSONResponse(
            status_code=status_code,
            content={
                "error": _public_message(container, message, exc),
                "error_code": exc.error_code,
                "insufficient_credits": insufficient_credits,
            },
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/api/options")
    async def options() -> dict[str, object]:
        """Return selectable garment options and the default prompt."""
        return {
            "choices": option_choices(),
            "defaults": PromptOptions().model_dump(by_alias=True),
            "defaultPrompt": build_prompt(PromptOptions()),
            "poses": list(POSE_LABELS),
            "maxGenerations": MAX_FAN_OUT,
        }

    @app.post("/api/prompt")
    async def prompt(payload: PromptRequest) -> PromptResponse:
        """Build a generation prompt from garment options."""
        return PromptResponse(prompt=build_prompt(payload.options))

    @app.get("/api/proxy-image")
    async def proxy_image(
        request: Request, url: str | None = Query(default=None)
    ) -> StreamingResponse:
        """Stream a remote image back to work around cross-origin limits."""
        if not url:
            raise ValidationError("URL is required")
        state_container: AppContainer = request.app.state.container
        stream = await state_container.image_fetcher.open_stream(url)
        return StreamingResponse(
            stream.chunks,
            media_type=stream.content_type or "application/octet-stream",
            background=BackgroundTask(stream.close),
        )

    @app.post("/api/archive")
    async def archive(payload: ArchiveRequest, request: Request) -> Response:
        """Package the listed grid images as a ZIP download."""
        state_container: AppContainer = request.app.state.container
        content = await state_container.archive_service.build_archive(
            [ArchiveEntry(seed=image.seed, url=image.url) for image in payload.images]
        )
        return Response(
            content=content,
            media_type="application/zip",
            headers={
                "Content-Disposition": f'attachment; filename="{ARCHIVE_FILENAME}"'
            },
        )

    return app


def _public_message(
    container: AppContainer, message: str, exc: FabricMuseError
) -> str:
    """Return the user-facing error, with exception detail when running locally."""
    if container.settings.environment == "local" and message != exc.message:
        return f"{message} (debug: {exc.message})"
    return message
