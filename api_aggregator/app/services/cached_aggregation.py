"""
Cache-aside decorator for the aggregation service.
Cache trouble never fails a request; it only costs a recomputation.
"""

from typing import Optional

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from ..api.schemas import AggregatedItem
from ..core.config import settings, provider_config
from ..core.exceptions import CacheError
from ..core.logging_config import create_logger
from .aggregation import BaseAggregationService
from .cache import CacheService

logger = create_logger(__name__)


def build_cache_key(
    ip: str,
    category: Optional[str] = None,
    sort_by: Optional[str] = None,
    descending: bool = False
) -> str:
    """
    Cache key for an aggregation request.

    Plain requests use ``Aggregated:<ip>``. Filter and sort parameters are
    appended so differently filtered results never share an entry.
    """
    key = provider_config.CACHE_KEYS['aggregated'].format(ip=ip)
    if category is None and sort_by is None and not descending:
        return key

    return f"{key}:category={category or ''}:sortBy={sort_by or ''}:descending={str(descending).lower()}"


class CachedAggregationService(BaseAggregationService):
    """Serves cached aggregations and stores fresh ones for ``ttl_seconds``."""

    def __init__(
        self,
        inner: BaseAggregationService,
        cache: CacheService,
        ttl_seconds: Optional[int] = None
    ):
        self._inner = inner
        self._cache = cache
        self._ttl_seconds = ttl_seconds or settings.aggregation_cache_ttl

    async def get_aggregated_data(
        self,
        ip: str,
        category: Optional[str] = None,
        sort_by: Optional[str] = None,
        descending: bool = False
    ) -> AggregatedItem:
        cache_key = build_cache_key(ip, category, sort_by, descending)

        # 1. Try cache first
        cached = await self._read(cache_key)
        if cached is not None:
            logger.info("Returning cached aggregation", extra={"ip": ip, "key": cache_key})
            return cached

        # 2. Delegate to inner service
        aggregated = await self._inner.get_aggregated_data(ip, category, sort_by, descending)

        # 3. Cache the result
        await self._write(cache_key, aggregated)

        return aggregated

    async def _read(self, cache_key: str) -> Optional[AggregatedItem]:
        try:
            payload = await self._cache.get(cache_key)
        except CacheError as e:
            logger.warning("Failed to read from cache", extra={"key": cache_key, "error": str(e)})
            return None

        if payload is None:
            return None

        try:
            return AggregatedItem.model_validate_json(payload)
        except ValidationError as e:
            logger.warning("Discarding malformed cached aggregation", extra={
                "key": cache_key,
                "error": str(e)
            })
            return None

    async def _write(self, cache_key: str, aggregated: AggregatedItem) -> None:
        try:
            payload = aggregated.model_dump_json(by_alias=True)
            await self._cache.set(cache_key, payload, self._ttl_seconds)
        except (CacheError, PydanticSerializationError) as e:
            logger.warning("Failed to cache aggregation", extra={"key": cache_key, "error": str(e)})
