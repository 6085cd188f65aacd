"""Shared pytest configuration and fixtures."""

import fnmatch
import json
from collections.abc import Generator
from typing import Any
from unittest.mock import patch

import pytest

from trendwatch.config import Settings, get_settings
from trendwatch.store.base import PipelineResult


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-e2e",
        action="store_true",
        default=False,
        help="Run e2e tests that hit a real Redis (uses REDIS_URL from the environment)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-e2e"):
        return
    skip_e2e = pytest.mark.skip(reason="Need --run-e2e flag to run")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip_e2e)


@pytest.fixture(autouse=True)
def _no_dotenv(request: pytest.FixtureRequest) -> Generator[None]:
    """Block .env loading so a developer's local file never leaks into tests.

    Sets Settings.model_config['env_file'] = None before each test (except e2e).
    """
    if "e2e" in request.keywords:
        yield
        return

    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


@pytest.fixture
def mock_settings() -> Generator[Any]:
    """Provide fake settings so tests don't depend on the environment.

    Patches get_settings at every import site so cached references are overridden.
    """
    fake_settings = type(
        "FakeSettings",
        (),
        {
            "redis_url": "redis://redis.test:6379/0",
            "redis_socket_timeout": 1.0,
            "redis_max_connections": 5,
            "trend_improvement_threshold": 5.0,
            "trend_degradation_threshold": -5.0,
            "trend_critical_threshold": -10.0,
            "default_period": "24h",
            "alert_schedule_cron": "",
            "log_level": "WARNING",
        },
    )()
    with (
        patch("trendwatch.config.get_settings", return_value=fake_settings),
        patch("trendwatch.store.redis_store.get_settings", return_value=fake_settings),
        patch("trendwatch.trends.service.get_settings", return_value=fake_settings),
        patch("trendwatch.api.main.get_settings", return_value=fake_settings),
        patch("trendwatch.api.scheduler.get_settings", return_value=fake_settings),
    ):
        yield fake_settings


# ---------------------------------------------------------------------------
# In-memory store double
# ---------------------------------------------------------------------------


class FakePipeline:
    def __init__(self, store: "FakeStore") -> None:
        self._store = store
        self._ops: list[tuple[str, tuple[Any, ...]]] = []

    def get(self, key: str) -> None:
        self._ops.append(("get", (key,)))

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._ops.append(("set", (key, value, ttl_seconds)))

    async def execute(self) -> list[PipelineResult]:
        self._store.check_up()
        self._store.pipeline_calls += 1
        results: list[PipelineResult] = []
        for op, args in self._ops:
            if args[0] in self._store.failing_keys:
                results.append((RuntimeError(f"WRONGTYPE {args[0]}"), None))
            elif op == "get":
                results.append((None, self._store.data.get(args[0])))
            else:
                self._store.data[args[0]] = args[1]
                self._store.ttls[args[0]] = args[2]
                results.append((None, True))
        self._ops = []
        return results


class FakeStore:
    """Dict-backed TimeKeyedStore recording TTLs and round trips.

    Set ``down = True`` to make every operation raise ConnectionError, or add keys
    to ``failing_keys`` to make individual pipeline commands fail.
    """

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.failing_keys: set[str] = set()
        self.down = False
        self.pipeline_calls = 0
        self.get_calls = 0
        self.closed = False

    def check_up(self) -> None:
        if self.down:
            raise ConnectionError("Error 111 connecting to redis.test:6379. Connection refused.")

    def seed(self, key: str, value: object, ttl: int = 0) -> None:
        self.data[key] = value if isinstance(value, str) else json.dumps(value)
        self.ttls[key] = ttl

    async def get(self, key: str) -> str | None:
        self.check_up()
        self.get_calls += 1
        return self.data.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.check_up()
        self.data[key] = value
        self.ttls[key] = ttl_seconds

    async def keys(self, pattern: str) -> list[str]:
        self.check_up()
        return [k for k in self.data if fnmatch.fnmatchcase(k, pattern)]

    async def delete(self, *keys: str) -> int:
        self.check_up()
        deleted = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                self.ttls.pop(key, None)
                deleted += 1
        return deleted

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    async def ping(self) -> bool:
        return not self.down

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


def make_sample(
    route: str,
    score: float,
    timestamp: str,
    *,
    lcp: float = 1800,
    fid: float = 40,
    cls: float = 0.05,
    ttfb: float = 200,
) -> dict[str, Any]:
    """Build a stored sample dict in the shape the web clients write."""
    return {
        "route": route,
        "timestamp": timestamp,
        "metrics": {"lcp": lcp, "fid": fid, "cls": cls, "ttfb": ttfb},
        "score": score,
    }
