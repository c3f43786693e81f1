from datetime import datetime, timedelta, timezone

import httpx
import pytest

from quiz_client.core.key_value_store import InMemoryKeyValueStore, JsonFileKeyValueStore
from quiz_client.core.quiz_manager import QuizManager
from quiz_client.server.dev_api_server import DevQuizBackend, create_dev_api_app
from quiz_client.utils.settings import ClientSettings

API_BASE_URL = "http://testserver/api"


class FakeClock:
    """Settable clock injected wherever the code reads the current time."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingTransport(httpx.AsyncBaseTransport):
    """Routes requests to the development API, recording and failing on demand."""

    def __init__(self, inner: httpx.AsyncBaseTransport, harness: "ClientHarness") -> None:
        self._inner = inner
        self._harness = harness

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self._harness.requests.append((request.method, path))
        if path in self._harness.unreachable_paths:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self._harness.failing_paths:
            return httpx.Response(503, json={"message": "Service unavailable"}, request=request)
        return await self._inner.handle_async_request(request)


class ClientHarness:
    """Shared stores, clock and backend; each manager() call is a fresh client 'reload'."""

    def __init__(self, settings: ClientSettings, clock: FakeClock) -> None:
        self.settings = settings
        self.clock = clock
        self.backend = DevQuizBackend()
        self.durable_store = JsonFileKeyValueStore(settings.storage_path)
        self.session_store = InMemoryKeyValueStore()
        self.failing_paths: set[str] = set()
        self.unreachable_paths: set[str] = set()
        self.requests: list[tuple[str, str]] = []

    def manager(self) -> QuizManager:
        transport = RecordingTransport(httpx.ASGITransport(app=create_dev_api_app(self.backend)), self)
        return QuizManager(
            self.settings,
            durable_store=self.durable_store,
            session_store=self.session_store,
            transport=transport,
            clock=self.clock,
        )

    def requests_to(self, method: str, path: str) -> int:
        return sum(1 for request in self.requests if request == (method, path))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return ClientSettings(api_base_url=API_BASE_URL, storage_path=tmp_path / "storage.json")


@pytest.fixture
def harness(settings, clock):
    return ClientHarness(settings, clock)
