"""Test fixtures and configuration."""
import pytest
import pytest_asyncio
from pathlib import Path
from typing import AsyncGenerator, List, Optional, Tuple
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base
from app.api.deps import get_webhook_service
from app.services.file_fetcher import FetchedFile
from app.services.scheduler import TaskScheduler, Task
from app.services.webhook_repository import WebhookRepository
from app.services.webhook_service import WebhookService
from app.utils.exceptions import FetchError, StoreError, NotifyError

# In-memory SQLite so tests run without PostgreSQL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class ManualScheduler(TaskScheduler):
    """Scheduler that only runs work when a test asks it to."""

    def __init__(self):
        self.scheduled: List[Tuple[float, Task]] = []

    def schedule_after(self, delay_seconds: float, task: Task) -> None:
        self.scheduled.append((delay_seconds, task))

    @property
    def delays(self) -> List[float]:
        return [delay for delay, _ in self.scheduled]

    async def run_next(self) -> float:
        """Run the oldest scheduled task and return its delay."""
        delay, task = self.scheduled.pop(0)
        await task()
        return delay

    async def run_all(self, limit: int = 20) -> int:
        """Run tasks, including ones scheduled while running, until none remain."""
        ran = 0
        while self.scheduled and ran < limit:
            await self.run_next()
            ran += 1
        return ran


class FakeFetcher:
    """Fetcher writing a small real file so cleanup can be observed."""

    def __init__(self, scratch_dir: Path, file_name: str = "file.pdf"):
        self.scratch_dir = scratch_dir
        self.file_name = file_name
        self.failures: List[Exception] = []
        self.calls: List[str] = []
        self.fetched: List[Path] = []

    async def fetch(self, url: str) -> FetchedFile:
        self.calls.append(url)
        if self.failures:
            raise self.failures.pop(0)
        local_path = self.scratch_dir / f"{len(self.calls)}_{self.file_name}"
        local_path.write_bytes(b"%PDF-1.4 test")
        self.fetched.append(local_path)
        return FetchedFile(local_path=local_path, file_name=self.file_name)

    @staticmethod
    async def remove(local_path: Path) -> None:
        try:
            local_path.unlink()
        except OSError:
            pass


class FakeBlobStore:
    """Blob store recording uploads and signing deterministic URLs."""

    def __init__(self):
        self.failures: List[Exception] = []
        self.uploads: List[Tuple[Path, str]] = []
        self.signed: List[Tuple[str, int]] = []

    async def upload(self, local_path, key: str, metadata: Optional[dict] = None) -> str:
        if self.failures:
            raise self.failures.pop(0)
        self.uploads.append((local_path, key))
        return key

    def signed_url(self, key: str, expires_in: int = 3600) -> str:
        self.signed.append((key, expires_in))
        return f"https://storage.test/{key}?sig=abc&se={expires_in}"


class FakeNotifier:
    """Notifier recording triggered runs."""

    def __init__(self):
        self.failures: List[Exception] = []
        self.triggers: List[Tuple[dict, str]] = []

    async def trigger(self, run_payload: dict, routing_hint: str) -> str:
        if self.failures:
            raise self.failures.pop(0)
        self.triggers.append((run_payload, routing_hint))
        return f"external-api_webhook-{len(self.triggers)}"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def repository(session_maker) -> WebhookRepository:
    return WebhookRepository(session_maker)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def fetcher(tmp_path) -> FakeFetcher:
    return FakeFetcher(tmp_path)


@pytest.fixture
def blob_store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def service(repository, fetcher, blob_store, notifier, scheduler) -> WebhookService:
    return WebhookService(
        repository=repository,
        fetcher=fetcher,
        blob_store=blob_store,
        notifier=notifier,
        scheduler=scheduler,
        max_retry_attempts=3,
        retry_delay_seconds=300,
    )


@pytest_asyncio.fixture(scope="function")
async def client(service) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client wired to the test processing engine."""
    app.dependency_overrides[get_webhook_service] = lambda: service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def sample_webhook():
    """Sample intake payload for testing."""
    return {
        "nome": "IPDO",
        "processo": "Operação em Tempo Real",
        "dataProduto": "20/02/2025",
        "macroProcesso": "Operação do Sistema",
        "periodicidade": "2025-02-20T00:00:00",
        "periodicidadeFinal": "2025-02-20T23:59:59",
        "url": "https://x/file.pdf",
    }


@pytest.fixture
def fetch_error():
    return FetchError("https://x/file.pdf", "HTTP 503")


@pytest.fixture
def store_error():
    return StoreError("webhooks/IPDO/key", "Service unavailable")


@pytest.fixture
def notify_error():
    return NotifyError("Failed to trigger Airflow DAG: boom", response_body="boom")
