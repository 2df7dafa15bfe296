"""Shared test fixtures."""

from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from itertools import count
from uuid import UUID, uuid4

import pytest

from fabric_muse.adapters.image_fetcher import FetchedImage, ImageFetcher, ImageStream
from fabric_muse.config import Settings
from fabric_muse.containers import AppContainer
from fabric_muse.domain.errors import (
    ImageFetchError,
    RemoteServiceError,
    StorageError,
    UploadTooLargeError,
)
from fabric_muse.domain.generation import TaskState, TaskStatus
from fabric_muse.domain.jobs import ImageRecord, JobKind, JobRecord, JobStatus
from fabric_muse.domain.sessions import ImageKind, SessionRecord
from fabric_muse.services.archive import ArchiveService
from fabric_muse.services.jobs import (
    GenerationClient,
    ImageRepository,
    JobOrchestrator,
    JobRepository,
)
from fabric_muse.services.sessions import SessionRepository, SessionService
from fabric_muse.services.storage import ObjectStore, StorageService

TEST_SUPABASE_KEY = (
    "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9."
    "eyJyb2xlIjoic2VydmljZV9yb2xlIn0."
    "c2lnbmF0dXJl"
)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[UUID, SessionRecord] = field(default_factory=dict)

    def create_session(
        self, swatch_url: str, silhouette_url: str | None
    ) -> SessionRecord:
        session = SessionRecord(
            id=uuid4(), swatch_url=swatch_url, silhouette_url=silhouette_url
        )
        self.sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def attach_image(
        self, session_id: UUID, kind: ImageKind, url: str
    ) -> SessionRecord | None:
        session = self.sessions.get(session_id)
        if session is None:
            return None
        if kind is ImageKind.SILHOUETTE:
            updated = replace(session, silhouette_url=url)
        else:
            updated = replace(session, swatch_url=url)
        self.sessions[session_id] = updated
        return updated

    def save_generation_settings(
        self,
        session_id: UUID,
        prompt_text: str,
        options: dict[str, object],
        consent: bool,
    ) -> None:
        session = self.sessions[session_id]
        self.sessions[session_id] = replace(
            session, prompt_text=prompt_text, options=options, consent=consent
        )


@dataclass
class InMemoryJobRepository(JobRepository):
    """In-memory job repository for tests."""

    jobs: dict[UUID, JobRecord] = field(default_factory=dict)

    def create_job(
        self, session_id: UUID, kind: JobKind, target_index: int | None
    ) -> JobRecord:
        job = JobRecord(
            id=uuid4(),
            session_id=session_id,
            status=JobStatus.PENDING,
            kind=kind,
            task_ids=(),
            created_at=datetime.now(tz=UTC),
            target_index=target_index,
        )
        self.jobs[job.id] = job
        return job

    def get_job(self, job_id: UUID) -> JobRecord | None:
        return self.jobs.get(job_id)

    def mark_processing(self, job_id: UUID, task_ids: Sequence[str]) -> JobRecord:
        job = replace(
            self.jobs[job_id], status=JobStatus.PROCESSING, task_ids=tuple(task_ids)
        )
        self.jobs[job_id] = job
        return job

    def mark_completed(self, job_id: UUID) -> None:
        job = self.jobs[job_id]
        if not job.status.is_terminal:
            self.jobs[job_id] = replace(job, status=JobStatus.COMPLETED)

    def mark_failed(self, job_id: UUID, error: str) -> None:
        job = self.jobs[job_id]
        if not job.status.is_terminal:
            self.jobs[job_id] = replace(job, status=JobStatus.FAILED, error=error)


@dataclass
class InMemoryImageRepository(ImageRepository):
    """In-memory image repository enforcing one image per (job, seed)."""

    images: dict[tuple[UUID, int], ImageRecord] = field(default_factory=dict)
    rejected: list[tuple[UUID, int]] = field(default_factory=list)

    def list_images(self, job_id: UUID) -> list[ImageRecord]:
        return sorted(
            (image for image in self.images.values() if image.job_id == job_id),
            key=lambda image: image.seed,
        )

    def create_image(self, job_id: UUID, url: str, seed: int) -> ImageRecord | None:
        key = (job_id, seed)
        if key in self.images:
            self.rejected.append(key)
            return None
        image = ImageRecord(id=uuid4(), job_id=job_id, url=url, seed=seed)
        self.images[key] = image
        return image


@dataclass
class FakeGenerationClient(GenerationClient):
    """Fake vendor client that issues sequential task ids."""

    created: list[tuple[str, list[str]]] = field(default_factory=list)
    statuses: dict[str, TaskStatus] = field(default_factory=dict)
    status_errors: dict[str, Exception] = field(default_factory=dict)
    create_errors: dict[int, Exception] = field(default_factory=dict)
    polled: list[str] = field(default_factory=list)
    _counter: count = field(default_factory=count)

    async def create_task(self, prompt: str, image_urls: Sequence[str]) -> str:
        call_number = next(self._counter)
        if call_number in self.create_errors:
            raise self.create_errors[call_number]
        self.created.append((prompt, list(image_urls)))
        return f"task-{call_number}"

    async def get_task_status(self, task_id: str) -> TaskStatus:
        self.polled.append(task_id)
        if task_id in self.status_errors:
            raise self.status_errors[task_id]
        return self.statuses.get(task_id, TaskStatus(task_id, TaskState.PENDING))

    def succeed(self, task_id: str, *urls: str) -> None:
        self.statuses[task_id] = TaskStatus(task_id, TaskState.SUCCESS, tuple(urls))

    def fail(self, task_id: str, message: str = "content policy") -> None:
        self.statuses[task_id] = TaskStatus(
            task_id, TaskState.FAIL, failure_message=message
        )


@dataclass
class FakeImageFetcher(ImageFetcher):
    """Fake fetcher serving bytes for known URLs."""

    payloads: dict[str, bytes] = field(default_factory=dict)
    content_type: str = "image/png"
    fetched: list[str] = field(default_factory=list)
    closed: list[str] = field(default_factory=list)

    async def fetch(self, url: str, max_bytes: int | None = None) -> FetchedImage:
        self.fetched.append(url)
        if url not in self.payloads:
            raise ImageFetchError(f"Failed to download {url}")
        content = self.payloads[url]
        if max_bytes is not None and len(content) > max_bytes:
            raise UploadTooLargeError(f"Image at {url} is too large")
        return FetchedImage(content=content, content_type=self.content_type)

    async def open_stream(self, url: str) -> ImageStream:
        if url not in self.payloads:
            raise ImageFetchError(f"Failed to download {url}")
        content = self.payloads[url]

        async def chunks() -> AsyncIterator[bytes]:
            yield content

        async def close() -> None:
            self.closed.append(url)

        return ImageStream(
            content_type=self.content_type, chunks=chunks(), close=close
        )


@dataclass
class InMemoryObjectStore(ObjectStore):
    """Object store keeping blobs in a dict."""

    blobs: dict[tuple[str, str], tuple[bytes, str]] = field(default_factory=dict)
    fail_writes: bool = False

    def put(self, bucket: str, key: str, content: bytes, content_type: str) -> str:
        if self.fail_writes:
            raise StorageError(f"Failed to upload {bucket}/{key}")
        self.blobs[(bucket, key)] = (content, content_type)
        return self.get_public_url(bucket, key)

    def get_public_url(self, bucket: str, key: str) -> str:
        return f"https://storage.test/{bucket}/{key}"


@dataclass
class Harness:
    """Services wired over in-memory fakes."""

    sessions: InMemorySessionRepository
    jobs: InMemoryJobRepository
    images: InMemoryImageRepository
    generation: FakeGenerationClient
    fetcher: FakeImageFetcher
    object_store: InMemoryObjectStore
    session_service: SessionService
    orchestrator: JobOrchestrator
    archive_service: ArchiveService


def build_harness(job_timeout_seconds: int = 900) -> Harness:
    sessions = InMemorySessionRepository()
    jobs = InMemoryJobRepository()
    images = InMemoryImageRepository()
    generation = FakeGenerationClient()
    fetcher = FakeImageFetcher()
    object_store = InMemoryObjectStore()
    storage_service = StorageService(
        object_store=object_store, fetcher=fetcher, generated_bucket="generations"
    )
    session_service = SessionService(
        session_repository=sessions,
        storage_service=storage_service,
        fetcher=fetcher,
        buckets={ImageKind.SWATCH: "swatches", ImageKind.SILHOUETTE: "silhouettes"},
        max_upload_bytes=1024,
    )
    orchestrator = JobOrchestrator(
        session_repository=sessions,
        job_repository=jobs,
        image_repository=images,
        generation_client=generation,
        storage_service=storage_service,
        output_format="png",
        job_timeout_seconds=job_timeout_seconds,
    )
    return Harness(
        sessions=sessions,
        jobs=jobs,
        images=images,
        generation=generation,
        fetcher=fetcher,
        object_store=object_store,
        session_service=session_service,
        orchestrator=orchestrator,
        archive_service=ArchiveService(fetcher),
    )


def credit_error() -> RemoteServiceError:
    return RemoteServiceError(
        "KIE API Error: insufficient credits", vendor_status=402
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_key=TEST_SUPABASE_KEY,
        kie_api_key="kie-key",
        environment="test",
    )


@pytest.fixture
def harness() -> Harness:
    return build_harness()


@pytest.fixture
def container(settings: Settings, harness: Harness) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        image_fetcher=harness.fetcher,
        session_service=harness.session_service,
        job_orchestrator=harness.orchestrator,
        archive_service=harness.archive_service,
        close_resources=close_resources,
    )
