"""
Service wiring for the Location Data Aggregator.
Builds every service once per process and owns their lifecycle.
"""

from dataclasses import dataclass
from typing import List

from ..core.config import Settings, provider_config, settings as default_settings
from ..core.exceptions import CacheError, ProviderError
from ..core.logging_config import create_logger
from ..providers.air_quality_provider import AirQualityProvider
from ..providers.base import BaseDataProvider, LocationDataProvider
from ..providers.earthquake_provider import EarthquakeProvider
from ..providers.ipstack_provider import IpStackProvider
from ..providers.weather_provider import WeatherProvider
from .aggregation import AggregationService
from .cache import CacheService
from .cached_aggregation import CachedAggregationService
from .resilience import CircuitBreaker, ResiliencePipeline
from .statistics import StatisticsService

logger = create_logger(__name__)


def build_pipeline(name: str, statistics: StatisticsService, config: Settings) -> ResiliencePipeline:
    """Resilience pipeline with its own circuit breaker for one provider client."""
    return ResiliencePipeline(
        name=name,
        statistics=statistics,
        retry_count=config.retry_count,
        attempt_timeout=config.attempt_timeout,
        circuit_breaker=CircuitBreaker(
            name,
            failure_threshold=config.circuit_breaker_failure_threshold,
            open_duration=config.circuit_breaker_timeout
        )
    )


@dataclass
class ServiceContainer:
    """All long-lived services of the application."""

    settings: Settings
    statistics: StatisticsService
    cache: CacheService
    location_resolver: IpStackProvider
    providers: List[LocationDataProvider]
    aggregation: AggregationService
    cached_aggregation: CachedAggregationService

    @classmethod
    def create(cls, config: Settings = default_settings) -> "ServiceContainer":
        statistics = StatisticsService()
        cache = CacheService(config.get_redis_url())

        # Statistics and circuit names are the providers' logical names
        location_resolver = IpStackProvider(
            build_pipeline(provider_config.IPSTACK, statistics, config),
            api_key=config.ipstack_api_key,
            base_url=config.ipstack_base_url
        )

        providers: List[LocationDataProvider] = [
            WeatherProvider(
                build_pipeline(provider_config.WEATHER, statistics, config),
                api_key=config.openweathermap_api_key,
                base_url=config.openweathermap_base_url
            ),
            AirQualityProvider(
                build_pipeline(provider_config.AIR_QUALITY, statistics, config),
                api_key=config.openweathermap_api_key,
                base_url=config.openweathermap_base_url
            ),
            EarthquakeProvider(
                build_pipeline(provider_config.EARTHQUAKES, statistics, config),
                base_url=config.usgs_base_url,
                radius_km=config.earthquake_radius_km,
                lookback_days=config.earthquake_lookback_days
            ),
        ]

        aggregation = AggregationService(location_resolver, providers)
        cached_aggregation = CachedAggregationService(
            aggregation, cache, ttl_seconds=config.aggregation_cache_ttl
        )

        return cls(
            settings=config,
            statistics=statistics,
            cache=cache,
            location_resolver=location_resolver,
            providers=providers,
            aggregation=aggregation,
            cached_aggregation=cached_aggregation
        )

    def all_providers(self) -> List[BaseDataProvider]:
        return [self.location_resolver, *self.providers]

    async def startup(self) -> None:
        """Connect Redis and provider clients; failures are logged, not fatal."""
        try:
            await self.cache.connect()
        except CacheError as e:
            logger.error("Redis unreachable at startup, cache will retry on use", extra={"error": str(e)})

        for provider in self.all_providers():
            try:
                await provider.connect()
                logger.info("Initialized provider", extra={"provider": provider.name})
            except ProviderError as e:
                # Still registered: its fetch will serve fallback values
                logger.error("Failed to initialize provider", extra={
                    "provider": provider.name,
                    "error": str(e)
                })

    async def shutdown(self) -> None:
        logger.info("Shutting down services")

        for provider in self.all_providers():
            try:
                await provider.disconnect()
            except Exception as e:
                logger.warning("Error disconnecting provider", extra={
                    "provider": provider.name,
                    "error": str(e)
                })

        await self.cache.disconnect()
