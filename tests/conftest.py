import pytest
from typer.testing import CliRunner

from motionkit.infrastructure.config.settings import clear_test_config
from motionkit.infrastructure.normalization.response_normalizer import ResponseNormalizer
from motionkit.infrastructure.resilience.api_retry import ApiRetryService, RetryPolicy


class FakeClock:
    """Manually advanced monotonic clock for TTL tests."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordedSleeps:
    """Async sleep replacement that records requested delays instead of waiting."""

    def __init__(self):
        self.delays = []
        self.tokens = []

    async def __call__(self, delay_s, token=None):
        self.delays.append(delay_s)
        self.tokens.append(token)
        if token is not None:
            token.raise_if_cancelled()


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def recorded_sleeps():
    return RecordedSleeps()


@pytest.fixture
def retry_service(recorded_sleeps):
    """Retry service with deterministic jitter and no real waiting."""
    return ApiRetryService(policy=RetryPolicy(), sleep=recorded_sleeps, random_fn=lambda: 0.5)


@pytest.fixture
def normalizer():
    return ResponseNormalizer()


@pytest.fixture
def workspace_payloads():
    return [
        {"id": "ws-team", "name": "Acme Team", "type": "TEAM"},
        {"id": "ws-me", "name": "My Space", "type": "INDIVIDUAL"},
        {"id": "ws-ops", "name": "Ops", "type": "TEAM"},
    ]


def _build_task_pages(page_count: int, page_size: int, prefix: str = "t"):
    """Builds wrapped task pages whose cursors advance c1, c2, ... and end on the last page."""
    pages = []
    for page in range(page_count):
        tasks = [{"id": f"{prefix}{page * page_size + i}", "name": f"Task {page * page_size + i}"} for i in range(page_size)]
        next_cursor = f"c{page + 1}" if page < page_count - 1 else None
        pages.append({"meta": {"nextCursor": next_cursor, "pageSize": page_size}, "tasks": tasks})
    return pages


@pytest.fixture
def make_task_pages():
    return _build_task_pages


@pytest.fixture
def task_pages():
    """Three wrapped pages of ten tasks each."""
    return _build_task_pages(3, 10)


@pytest.fixture(autouse=True)
def reset_test_config():
    """Keeps configuration overrides from leaking between tests."""
    clear_test_config()
    yield
    clear_test_config()
