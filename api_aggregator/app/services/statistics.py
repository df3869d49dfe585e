"""
In-memory request statistics for outbound provider calls.
Durations are bucketed into fast / average / slow performance tiers.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, Dict, List

from ..api.schemas import ApiStatistics, PerformanceBuckets, StatisticsResponse
from ..core.logging_config import create_logger

logger = create_logger(__name__)

FAST_THRESHOLD_MS = 200.0
SLOW_THRESHOLD_MS = 500.0


@dataclass(frozen=True)
class RequestMetric:
    """A single recorded provider call."""
    provider_name: str
    duration_ms: float
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def classify_duration(duration_ms: float) -> str:
    """Return the performance bucket name for a duration."""
    if duration_ms < FAST_THRESHOLD_MS:
        return "fast"
    if duration_ms <= SLOW_THRESHOLD_MS:
        return "average"
    return "slow"


class StatisticsService:
    """
    Process-lifetime store of request metrics.

    ``deque.append`` is atomic, so concurrent recorders never block each other
    or readers. ``get_statistics`` works on a point-in-time copy.
    """

    def __init__(self):
        self._metrics: Deque[RequestMetric] = deque()

    def record(self, provider_name: str, duration_ms: float) -> None:
        """Record the duration of one logical request to a provider."""
        metric = RequestMetric(provider_name=provider_name, duration_ms=max(0.0, duration_ms))
        self._metrics.append(metric)

        logger.debug("Recorded provider request", extra={
            "provider": provider_name,
            "duration_ms": round(metric.duration_ms, 3)
        })

    def metrics(self) -> List[RequestMetric]:
        """Snapshot of all recorded metrics."""
        return list(self._metrics)

    def get_statistics(self) -> StatisticsResponse:
        """Group recorded metrics by provider and summarize them."""
        grouped: Dict[str, List[float]] = defaultdict(list)
        for metric in self.metrics():
            grouped[metric.provider_name].append(metric.duration_ms)

        statistics = []
        for provider_name, durations in grouped.items():
            counts = {"fast": 0, "average": 0, "slow": 0}
            for duration in durations:
                counts[classify_duration(duration)] += 1

            statistics.append(ApiStatistics(
                api_name=provider_name,
                total_requests=len(durations),
                average_response_time=sum(durations) / len(durations),
                performance_buckets=PerformanceBuckets(**counts)
            ))

        return StatisticsResponse(statistics=statistics)
