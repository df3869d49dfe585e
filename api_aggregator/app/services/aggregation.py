"""
Aggregation service for the Location Data Aggregator.
Resolves a location, fans out to every registered provider and merges the results.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Protocol, Sequence

from ..api.schemas import AggregatedItem, CircuitBreakerStatus, Location
from ..core.exceptions import LocationUnresolvedError
from ..core.logging_config import create_logger
from ..providers.base import LocationDataProvider
from .filtering import apply_filtering_and_sorting

logger = create_logger(__name__)


class LocationResolver(Protocol):
    async def resolve_location(self, ip: str) -> Optional[Location]:
        ...


class BaseAggregationService(ABC):
    """Contract shared by the aggregation service and its decorators."""

    @abstractmethod
    async def get_aggregated_data(
        self,
        ip: str,
        category: Optional[str] = None,
        sort_by: Optional[str] = None,
        descending: bool = False
    ) -> AggregatedItem:
        """
        Get aggregated provider data for the location of an IP address.

        Args:
            ip: Client IP address
            category: Keep only filterable items of this category
            sort_by: Sort field for filterable items
            descending: Sort direction when ``sort_by`` is given

        Returns:
            Aggregated item with one data entry per provider

        Raises:
            LocationUnresolvedError: If the IP cannot be located
        """
        pass


class AggregationService(BaseAggregationService):
    """Fan-out/fan-in over all registered location data providers."""

    def __init__(self, location_resolver: LocationResolver, providers: Sequence[LocationDataProvider]):
        self._location_resolver = location_resolver
        self._providers: List[LocationDataProvider] = list(providers)

    @property
    def providers(self) -> List[LocationDataProvider]:
        return list(self._providers)

    def register_provider(self, provider: LocationDataProvider) -> None:
        """Add a provider to the fan-out set."""
        self._providers.append(provider)
        logger.info("Registered provider", extra={"provider": provider.name})

    async def get_aggregated_data(
        self,
        ip: str,
        category: Optional[str] = None,
        sort_by: Optional[str] = None,
        descending: bool = False
    ) -> AggregatedItem:
        # 1. Location from IP
        location = await self._location_resolver.resolve_location(ip)
        if location is None:
            logger.warning("Could not determine location from IP", extra={"ip": ip})
            raise LocationUnresolvedError(ip)

        # 2. Every provider in parallel; providers absorb their own failures
        providers = list(self._providers)
        results = await asyncio.gather(*(
            provider.fetch(location.latitude, location.longitude)
            for provider in providers
        ))

        # 3. Merge
        data = {provider.name: result for provider, result in zip(providers, results)}

        logger.info("Aggregated provider data", extra={
            "ip": ip,
            "city": location.city,
            "providers": list(data.keys())
        })

        # 4. Filter and sort filterable collections
        return AggregatedItem(
            city=location.city,
            country=location.country,
            latitude=location.latitude,
            longitude=location.longitude,
            data=apply_filtering_and_sorting(data, category, sort_by, descending)
        )

    def get_circuit_breaker_status(self) -> List[CircuitBreakerStatus]:
        """Circuit breaker status of every provider client, including the resolver's."""
        status = [provider.circuit_status() for provider in self._providers]
        resolver_status = getattr(self._location_resolver, 'circuit_status', None)
        if resolver_status is not None:
            status.insert(0, resolver_status())
        return status
