from datetime import datetime, timezone
from typing import Callable, List, Optional

import httpx
import pytest

from app.api.schemas import EarthquakeEvent
from app.services.resilience import CircuitBreaker, ResiliencePipeline
from app.services.statistics import StatisticsService


class FakeClock:
    """Monotonic clock that only moves when told to, or when sleep() is awaited."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def statistics() -> StatisticsService:
    return StatisticsService()


@pytest.fixture
def make_pipeline(clock: FakeClock, statistics: StatisticsService) -> Callable[..., ResiliencePipeline]:
    def _make(
        name: str = "Test",
        retry_count: int = 3,
        attempt_timeout: float = 10.0,
        failure_threshold: int = 3,
        open_duration: float = 30.0
    ) -> ResiliencePipeline:
        return ResiliencePipeline(
            name=name,
            statistics=statistics,
            retry_count=retry_count,
            attempt_timeout=attempt_timeout,
            circuit_breaker=CircuitBreaker(
                name,
                failure_threshold=failure_threshold,
                open_duration=open_duration,
                clock=clock
            ),
            clock=clock,
            sleep=clock.sleep
        )

    return _make


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def quake(
    event_id: str,
    created_at: Optional[datetime],
    category: Optional[str] = "earthquake",
    relevance: Optional[int] = None
) -> EarthquakeEvent:
    return EarthquakeEvent(id=event_id, created_at=created_at, category=category, relevance=relevance)


def at(day: int, hour: int = 0) -> datetime:
    return datetime(2024, 5, day, hour, tzinfo=timezone.utc)
