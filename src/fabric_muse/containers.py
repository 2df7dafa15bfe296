"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from fabric_muse.adapters.image_fetcher import HttpxImageFetcher, ImageFetcher
from fabric_muse.adapters.kie_client import HttpxKieClient
from fabric_muse.adapters.supabase_image_repository import SupabaseImageRepository
from fabric_muse.adapters.supabase_job_repository import SupabaseJobRepository
from fabric_muse.adapters.supabase_object_store import SupabaseObjectStore
from fabric_muse.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from fabric_muse.config import Settings
from fabric_muse.domain.generation import GenerationOptions
from fabric_muse.domain.sessions import ImageKind
from fabric_muse.services.archive import ArchiveService
from fabric_muse.services.jobs import JobOrchestrator
from fabric_muse.services.sessions import SessionService
from fabric_muse.services.storage import StorageService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    image_fetcher: ImageFetcher
    session_service: SessionService
    job_orchestrator: JobOrchestrator
    archive_service: ArchiveService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    job_repository = SupabaseJobRepository(supabase_client)
    image_repository = SupabaseImageRepository(supabase_client)
    image_fetcher = HttpxImageFetcher.create(
        timeout_seconds=resolved_settings.fetch_timeout_seconds
    )
    storage_service = StorageService(
        object_store=SupabaseObjectStore(supabase_client),
        fetcher=image_fetcher,
        generated_bucket=resolved_settings.generated_bucket,
    )
    kie_client = HttpxKieClient.create(
        api_key=resolved_settings.kie_api_key,
        base_url=resolved_settings.kie_base_url,
        options=GenerationOptions(
            model=resolved_settings.kie_model,
            aspect_ratio=resolved_settings.kie_aspect_ratio,
            resolution=resolved_settings.kie_resolution,
            output_format=resolved_settings.kie_output_format,
        ),
        timeout_seconds=resolved_settings.kie_timeout_seconds,
    )
    session_service = SessionService(
        session_repository=session_repository,
        storage_service=storage_service,
        fetcher=image_fetcher,
        buckets={
            ImageKind.SWATCH: resolved_settings.swatch_bucket,
            ImageKind.SILHOUETTE: resolved_settings.silhouette_bucket,
        },
        max_upload_bytes=resolved_settings.max_upload_bytes,
    )
    job_orchestrator = JobOrchestrator(
        session_repository=session_repository,
        job_repository=job_repository,
        image_repository=image_repository,
        generation_client=kie_client,
        storage_service=storage_service,
        output_format=resolved_settings.kie_output_format,
        job_timeout_seconds=resolved_settings.job_timeout_seconds,
    )
    archive_service = ArchiveService(image_fetcher)

    async def close_resources() -> None:
        await kie_client.close()
        await image_fetcher.close()

    return AppContainer(
        settings=resolved_settings,
        image_fetcher=image_fetcher,
        session_service=session_service,
        job_orchestrator=job_orchestrator,
        archive_service=archive_service,
        close_resources=close_resources,
    )
