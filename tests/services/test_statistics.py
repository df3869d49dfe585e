from concurrent.futures import ThreadPoolExecutor

import pytest

from app.services.statistics import StatisticsService, classify_duration


@pytest.mark.parametrize("duration_ms,bucket", [
    (0, "fast"),
    (199.9, "fast"),
    (200, "average"),
    (350, "average"),
    (500, "average"),
    (500.1, "slow"),
    (14000, "slow"),
])
def test_classify_duration_boundaries(duration_ms: float, bucket: str) -> None:
    assert classify_duration(duration_ms) == bucket


def test_buckets_and_average_for_one_provider(statistics: StatisticsService) -> None:
    durations = [100, 199.9, 200, 350, 500, 500.1, 1200]
    for duration in durations:
        statistics.record("Weather", duration)

    result = statistics.get_statistics()

    assert len(result.statistics) == 1
    weather = result.statistics[0]
    assert weather.api_name == "Weather"
    assert weather.total_requests == 7
    assert weather.average_response_time == pytest.approx(sum(durations) / 7)
    assert weather.performance_buckets.fast == 2
    assert weather.performance_buckets.average == 3
    assert weather.performance_buckets.slow == 2


def test_statistics_grouped_by_provider(statistics: StatisticsService) -> None:
    statistics.record("Weather", 100)
    statistics.record("AirQuality", 300)
    statistics.record("Weather", 700)

    by_name = {entry.api_name: entry for entry in statistics.get_statistics().statistics}

    assert set(by_name) == {"Weather", "AirQuality"}
    assert by_name["Weather"].total_requests == 2
    assert by_name["Weather"].average_response_time == pytest.approx(400)
    assert by_name["AirQuality"].performance_buckets.average == 1


def test_empty_store_reports_no_providers(statistics: StatisticsService) -> None:
    assert statistics.get_statistics().statistics == []


def test_negative_durations_are_clamped(statistics: StatisticsService) -> None:
    statistics.record("Weather", -5)

    assert statistics.metrics()[0].duration_ms == 0.0


def test_bucket_counts_always_sum_to_total(statistics: StatisticsService) -> None:
    for duration in range(0, 1000, 7):
        statistics.record("Earthquakes", duration)

    entry = statistics.get_statistics().statistics[0]
    buckets = entry.performance_buckets
    assert buckets.fast + buckets.average + buckets.slow == entry.total_requests


def test_concurrent_recording_loses_nothing(statistics: StatisticsService) -> None:
    def record_many(provider: str) -> None:
        for i in range(500):
            statistics.record(provider, float(i))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(record_many, ["Weather", "AirQuality"] * 4))

    totals = {entry.api_name: entry.total_requests for entry in statistics.get_statistics().statistics}
    assert totals == {"Weather": 2000, "AirQuality": 2000}


def test_statistics_serialize_with_camel_case_names(statistics: StatisticsService) -> None:
    statistics.record("Weather", 120)

    payload = statistics.get_statistics().model_dump(by_alias=True)

    entry = payload["statistics"][0]
    assert entry["apiName"] == "Weather"
    assert entry["totalRequests"] == 1
    assert entry["averageResponseTime"] == pytest.approx(120)
    assert entry["performanceBuckets"] == {"fast": 1, "average": 0, "slow": 0}
