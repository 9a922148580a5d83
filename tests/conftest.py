import os
import tempfile
import threading

_TEST_DIR = tempfile.mkdtemp(prefix="slm-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR}/app.db")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("UPLOADS_DIR", _TEST_DIR)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from storage_limit.core.config import Settings  # noqa: E402
from storage_limit.db.models import Base  # noqa: E402
from storage_limit.db.session import make_engine, make_session_factory  # noqa: E402
from storage_limit.services.object_store import StoredObject  # noqa: E402
from storage_limit.services.stats import QuotaConfig  # noqa: E402
from storage_limit.services.usage_store import UsageStore  # noqa: E402


class RecordingSink:
    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [event for event in self.events if isinstance(event, event_type)]


class FixedQuota:
    def __init__(self, max_storage_bytes: int = 1_000_000, blocking_enabled: bool = True):
        self.max_storage_bytes = max_storage_bytes
        self.blocking_enabled = blocking_enabled

    def get_quota_config(self) -> QuotaConfig:
        return QuotaConfig(max_storage_bytes=self.max_storage_bytes, blocking_enabled=self.blocking_enabled)


class InMemoryObjectStore:
    """Objects keyed by path; a size of None means the file is gone."""

    def __init__(self, sizes: list[int | None], mime_type: str = "image/png"):
        self.sizes = {}
        self.objects = []
        for index, size in enumerate(sizes):
            key = f"uploads/{index:05d}.bin"
            self.sizes[key] = size
            self.objects.append(StoredObject(id=str(index), object_key=key, mime_type=mime_type))
        self.calls = []

    def list_objects(self, page_size, offset):
        self.calls.append((page_size, offset))
        return self.objects[offset : offset + page_size]

    def resolve_file(self, obj):
        if self.sizes.get(obj.object_key) is None:
            return None
        return obj.object_key

    def file_size(self, path):
        return self.sizes.get(path)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLeaseStore:
    """Same contract as RedisLeaseStore, with expiry driven by a FakeClock."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.expiry = {}
        self._lock = threading.Lock()

    def _alive(self, key):
        expires_at = self.expiry.get(key)
        return expires_at is not None and expires_at > self.clock.now

    def acquire(self, key, ttl_seconds):
        with self._lock:
            if self._alive(key):
                return False
            self.expiry[key] = self.clock.now + ttl_seconds
            return True

    def release(self, key):
        with self._lock:
            self.expiry.pop(key, None)

    def set_flag(self, key, ttl_seconds):
        with self._lock:
            self.expiry[key] = self.clock.now + ttl_seconds

    def pop_flag(self, key):
        with self._lock:
            alive = self._alive(key)
            self.expiry.pop(key, None)
            return alive

    def is_held(self, key):
        return self._alive(key)


class RecordingExecutor:
    def __init__(self):
        self.jobs = []
        self._lock = threading.Lock()

    def schedule_once(self, delay_seconds, job_id):
        with self._lock:
            self.jobs.append((delay_seconds, job_id))

    def run_pending(self, scheduler):
        """Fire every scheduled job, as the RQ worker would once the delay elapses."""
        jobs, self.jobs = self.jobs, []
        return [scheduler.run_delayed() for _ in jobs]


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def usage_store(session_factory, sink):
    return UsageStore(session_factory, sink)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def leases(clock):
    return FakeLeaseStore(clock)


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def uploads_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(tmp_path, uploads_dir):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        redis_url="redis://localhost:6379/15",
        storage_backend="local",
        uploads_dir=str(uploads_dir),
        quota_default_mb=1,
        max_upload_size="512K",
    )


@pytest.fixture
def services(test_settings, session_factory, leases, executor):
    from storage_limit.services.container import build_services

    return build_services(test_settings, session_factory, leases=leases, executor=executor)


@pytest_asyncio.fixture
async def client(services):
    from storage_limit.main import create_app

    app = create_app(services=services)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as c:
        yield c
