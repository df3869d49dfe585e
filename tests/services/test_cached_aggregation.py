from typing import Dict, List, Optional, Tuple
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import at, quake

from app.api.schemas import AggregatedItem, AirQualityData, WeatherData
from app.core.exceptions import CacheError, LocationUnresolvedError
from app.services.aggregation import BaseAggregationService
from app.services.cache import CacheService
from app.services.cached_aggregation import CachedAggregationService, build_cache_key


class MemoryCache:
    """Dict-backed stand-in for CacheService."""

    def __init__(self, fail_reads: bool = False, fail_writes: bool = False):
        self.store: Dict[str, str] = {}
        self.writes: List[Tuple[str, str, int]] = []
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    async def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise CacheError("connection refused")
        return self.store.get(key)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if self.fail_writes:
            raise CacheError("read only replica")
        self.writes.append((key, value, ttl_seconds))
        self.store[key] = value


def sample_item() -> AggregatedItem:
    return AggregatedItem(
        city="Mountain View",
        country="US",
        latitude=37.4,
        longitude=-122.1,
        data={
            "Weather": WeatherData(summary="Clear", description="clear sky", temp_c=22.5),
            "AirQuality": AirQualityData(aqi=2, pm25=8.5, pm10=15.0),
        }
    )


def inner_returning(item: AggregatedItem) -> AsyncMock:
    inner = AsyncMock(spec=BaseAggregationService)
    inner.get_aggregated_data.return_value = item
    return inner


def test_plain_requests_are_keyed_by_ip() -> None:
    assert build_cache_key("8.8.8.8") == "Aggregated:8.8.8.8"


def test_filter_parameters_extend_the_key() -> None:
    key = build_cache_key("8.8.8.8", category="earthquake", sort_by="relevance", descending=True)

    assert key == "Aggregated:8.8.8.8:category=earthquake:sortBy=relevance:descending=true"
    assert build_cache_key("8.8.8.8", category="earthquake") != build_cache_key("8.8.8.8")


@pytest.mark.asyncio
async def test_miss_delegates_and_stores_for_five_minutes() -> None:
    cache = MemoryCache()
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, cache, ttl_seconds=300)

    result = await service.get_aggregated_data("8.8.8.8")

    assert result == sample_item()
    inner.get_aggregated_data.assert_awaited_once_with("8.8.8.8", None, None, False)
    assert len(cache.writes) == 1
    key, payload, ttl = cache.writes[0]
    assert key == "Aggregated:8.8.8.8"
    assert ttl == 300
    assert '"tempC":22.5' in payload


@pytest.mark.asyncio
async def test_hit_bypasses_the_inner_service() -> None:
    cache = MemoryCache()
    cache.store["Aggregated:8.8.8.8"] = sample_item().model_dump_json(by_alias=True)
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, cache)

    result = await service.get_aggregated_data("8.8.8.8")

    inner.get_aggregated_data.assert_not_awaited()
    assert result.city == "Mountain View"
    assert result.data["Weather"].temp_c == 22.5


@pytest.mark.asyncio
async def test_round_trip_through_the_cache_is_lossless() -> None:
    cache = MemoryCache()
    events = [quake("us7000abcd", at(3), relevance=120)]
    item = sample_item().model_copy(update={"data": {**sample_item().data, "Earthquakes": events}})
    service = CachedAggregationService(inner_returning(item), cache)

    fresh = await service.get_aggregated_data("8.8.8.8")
    cached = await service.get_aggregated_data("8.8.8.8")

    assert cached == fresh
    assert isinstance(cached.data["Weather"], WeatherData)
    assert isinstance(cached.data["AirQuality"], AirQualityData)
    assert cached.data["Earthquakes"] == events


@pytest.mark.asyncio
async def test_read_failure_falls_through_with_a_warning() -> None:
    cache = MemoryCache(fail_reads=True)
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, cache)

    with patch("app.services.cached_aggregation.logger", MagicMock()) as logger:
        result = await service.get_aggregated_data("8.8.8.8")

    assert result == sample_item()
    inner.get_aggregated_data.assert_awaited_once()
    logger.warning.assert_called_once()
    assert logger.warning.call_args.args[0] == "Failed to read from cache"


@pytest.mark.asyncio
async def test_malformed_cache_entry_is_treated_as_a_miss() -> None:
    cache = MemoryCache()
    cache.store["Aggregated:8.8.8.8"] = '{"city": "Nowhere"'
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, cache)

    result = await service.get_aggregated_data("8.8.8.8")

    assert result == sample_item()
    inner.get_aggregated_data.assert_awaited_once()
    assert cache.store["Aggregated:8.8.8.8"] == sample_item().model_dump_json(by_alias=True)


@pytest.mark.asyncio
async def test_undecodable_cache_entry_is_treated_as_a_miss() -> None:
    redis_client = AsyncMock()
    redis_client.get.return_value = b"\xff\xfe{"
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, CacheService("redis://localhost:6379/0", client=redis_client))

    with patch("app.services.cached_aggregation.logger", MagicMock()) as logger:
        result = await service.get_aggregated_data("8.8.8.8")

    assert result == sample_item()
    inner.get_aggregated_data.assert_awaited_once()
    assert logger.warning.call_args_list[0].args[0] == "Failed to read from cache"
    redis_client.setex.assert_awaited_once()


@pytest.mark.asyncio
async def test_unserializable_result_is_returned_without_caching() -> None:
    cache = MemoryCache()
    item = sample_item().model_copy(update={"data": {"Custom": object()}})
    service = CachedAggregationService(inner_returning(item), cache)

    with patch("app.services.cached_aggregation.logger", MagicMock()) as logger:
        result = await service.get_aggregated_data("8.8.8.8")

    assert result is item
    assert cache.store == {}
    logger.warning.assert_called_once()
    assert logger.warning.call_args.args[0] == "Failed to cache aggregation"


@pytest.mark.asyncio
async def test_write_failure_returns_result_and_next_request_recomputes() -> None:
    cache = MemoryCache(fail_writes=True)
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, cache)

    with patch("app.services.cached_aggregation.logger", MagicMock()) as logger:
        first = await service.get_aggregated_data("8.8.8.8")
        second = await service.get_aggregated_data("8.8.8.8")

    assert first == second == sample_item()
    assert inner.get_aggregated_data.await_count == 2
    assert logger.warning.call_count == 2
    assert logger.warning.call_args.args[0] == "Failed to cache aggregation"


@pytest.mark.asyncio
async def test_differently_filtered_requests_do_not_share_entries() -> None:
    cache = MemoryCache()
    inner = inner_returning(sample_item())
    service = CachedAggregationService(inner, cache)

    await service.get_aggregated_data("8.8.8.8")
    await service.get_aggregated_data("8.8.8.8", category="earthquake")

    assert inner.get_aggregated_data.await_count == 2
    assert set(cache.store) == {
        "Aggregated:8.8.8.8",
        "Aggregated:8.8.8.8:category=earthquake:sortBy=:descending=false",
    }


@pytest.mark.asyncio
async def test_location_errors_are_not_cached() -> None:
    cache = MemoryCache()
    inner = AsyncMock(spec=BaseAggregationService)
    inner.get_aggregated_data.side_effect = LocationUnresolvedError("10.0.0.1")
    service = CachedAggregationService(inner, cache)

    with pytest.raises(LocationUnresolvedError):
        await service.get_aggregated_data("10.0.0.1")

    assert cache.store == {}
