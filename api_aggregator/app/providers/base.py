"""
Abstract base classes for external data providers.
Every outbound call goes through the provider's ResiliencePipeline.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import httpx

from ..api.schemas import CircuitBreakerStatus
from ..core.exceptions import (
    AuthenticationError, DataNotFoundError, ProviderError
)
from ..core.logging_config import create_logger
from ..services.resilience import ResiliencePipeline

logger = create_logger(__name__)


class BaseDataProvider(ABC):
    """HTTP plumbing shared by all providers."""

    requires_api_key = True

    def __init__(
        self,
        name: str,
        base_url: str,
        pipeline: ResiliencePipeline,
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.pipeline = pipeline
        self.client = client

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self) -> None:
        """Initialize HTTP client connection."""
        self._check_api_key()

        if self.client is None:
            # Attempt deadlines are enforced by the pipeline; this only guards connects
            timeout = httpx.Timeout(30.0, connect=10.0)
            limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)

            self.client = httpx.AsyncClient(
                timeout=timeout,
                limits=limits,
                headers=self._get_default_headers(),
                follow_redirects=True
            )

            logger.debug("Connected to provider", extra={"provider": self.name})

    async def disconnect(self) -> None:
        """Close HTTP client connection."""
        if self.client:
            await self.client.aclose()
            self.client = None
            logger.debug("Disconnected from provider", extra={"provider": self.name})

    def _check_api_key(self) -> None:
        if self.requires_api_key and not self.api_key:
            raise AuthenticationError(f"{self.name} API key is required", self.name)

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            'User-Agent': 'Location-Data-Aggregator/1.0.0',
            'Accept': 'application/json'
        }

    async def _make_request(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """GET ``url`` through the resilience pipeline and return the parsed JSON body."""
        self._check_api_key()
        if not self.client:
            await self.connect()

        client = self.client
        response = await self.pipeline.execute(lambda: client.get(url, params=params))
        self._raise_for_status(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Invalid JSON from {self.name}: {str(e)}", self.name) from e

        logger.debug("Received response from provider", extra={
            "provider": self.name,
            "status_code": response.status_code,
            "response_size": len(response.content)
        })
        return data

    def _raise_for_status(self, response: httpx.Response) -> None:
        """Map a non-transient error response onto the provider error hierarchy."""
        if not response.is_error:
            return

        status_code = response.status_code
        if status_code in (401, 403):
            error_type = AuthenticationError
        elif status_code == 404:
            error_type = DataNotFoundError
        else:
            error_type = ProviderError

        raise error_type(f"HTTP {status_code} from {self.name}", self.name, status_code=status_code)

    def circuit_status(self) -> CircuitBreakerStatus:
        return self.pipeline.circuit_breaker.status()


class LocationDataProvider(BaseDataProvider):
    """
    Provider of data for a geographic coordinate.

    ``fetch`` never raises for provider trouble: any failure, or an empty
    answer, yields the provider's typed ``fallback`` value so the aggregator
    can treat every provider the same way. Task cancellation still propagates.
    """

    async def fetch(self, latitude: float, longitude: float) -> Any:
        """Get data for a location, or the fallback value."""
        try:
            result = await self.get_data(latitude, longitude)
        except Exception as e:
            logger.warning("Provider failed, using fallback value", extra={
                "provider": self.name,
                "error_type": type(e).__name__,
                "error": str(e)
            })
            return self.fallback()

        if result is None:
            logger.info("Provider returned no data, using fallback value", extra={
                "provider": self.name
            })
            return self.fallback()

        return result

    @abstractmethod
    async def get_data(self, latitude: float, longitude: float) -> Any:
        """
        Get provider data for the given coordinates.

        Args:
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees

        Returns:
            Provider payload, or None if the provider had nothing for this location

        Raises:
            ProviderError: If unable to fetch data
        """
        pass

    @abstractmethod
    def fallback(self) -> Any:
        """Well-formed value returned when the provider cannot deliver data."""
        pass
