"""Shared test fixtures for unit tests."""

import pytest

from echos.core.config import RuntimeSettings, clear_config_cache


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


class RecordingSleep:
    """Awaitable sleep stand-in that records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    return RecordingSleep()


@pytest.fixture
def settings(tmp_path):
    return RuntimeSettings(logs=False, trace_dir=tmp_path / "traces")


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep ECHOS_* variables from the developer's shell out of tests."""
    for var in ("ECHOS_API_URL", "ECHOS_API_KEY", "ECHOS_LOGS", "ECHOS_TRACE_DIR", "ECHOS_WORKFLOW_NAME"):
        monkeypatch.delenv(var, raising=False)
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def basic_workflow():
    """Orchestrator that may call a single worker."""
    return {
        "name": "basic",
        "agents": [
            {"name": "orchestrator", "type": "orchestrator"},
            {"name": "worker", "type": "worker"},
        ],
        "routes": {"orchestrator": {"canCall": ["worker"]}},
    }
