"""Shared fixtures for recurbot tests."""

from collections.abc import Generator
from datetime import date
from types import SimpleNamespace
from typing import Any

import pytest

from recurbot.core.config_manager import EngineConfig
from recurbot.domain.instance_store import InstanceStore
from recurbot.engine import RecurringTaskEngine
from recurbot.engine_logging import RateLimiter
from recurbot.storage.memory_storage import InMemoryTaskStorage
from tests.utils.helpers import FakeClock, RecordingSink


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object used across tests.

    Fields:
      - batch_size: work items per concurrent batch
      - default_cap / reduced_cap: instance caps below / at the complexity threshold
      - complexity_threshold: score at which the reduced cap applies
      - batch_pause_seconds: zero so drains do not sleep
    """
    return SimpleNamespace(
        batch_size=5,
        default_cap=50,
        complexity_threshold=7,
        reduced_cap=20,
        batch_pause_seconds=0,
    )


@pytest.fixture
def engine_config(simple_settings: SimpleNamespace) -> EngineConfig:
    return EngineConfig.from_settings(simple_settings)


@pytest.fixture
def clock() -> FakeClock:
    """Clock frozen at Monday 2024-01-01."""
    return FakeClock(date(2024, 1, 1))


@pytest.fixture
def storage() -> InMemoryTaskStorage:
    return InMemoryTaskStorage()


@pytest.fixture
def store() -> InstanceStore:
    return InstanceStore()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def engine(
    storage: InMemoryTaskStorage,
    engine_config: EngineConfig,
    clock: FakeClock,
    sink: RecordingSink,
) -> RecurringTaskEngine:
    return RecurringTaskEngine(storage, engine_config, notification_sink=sink, time_provider=clock)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear engine environment overrides so tests cannot leak into each other."""
    for name in (
        "RECURBOT_TEST_TIME",
        "RECURBOT_DEBUG",
        "RECURBOT_LOG_LEVEL",
        "RECURBOT_BATCH_SIZE",
        "RECURBOT_DEFAULT_CAP",
        "RECURBOT_REDUCED_CAP",
    ):
        monkeypatch.delenv(name, raising=False)
    RateLimiter.reset()
    yield
    RateLimiter.reset()
