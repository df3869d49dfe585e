"""
IPStack geolocation provider.
Resolves a client IP address to a Location.
"""

from typing import Optional
import httpx
from pydantic import ValidationError

from .base import BaseDataProvider
from ..api.schemas import Location
from ..core.config import settings, provider_config
from ..core.exceptions import ProviderError
from ..core.logging_config import create_logger
from ..services.resilience import ResiliencePipeline

logger = create_logger(__name__)


class IpStackProvider(BaseDataProvider):
    """IP geolocation via api.ipstack.com."""

    def __init__(
        self,
        pipeline: ResiliencePipeline,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(
            name=provider_config.IPSTACK,
            base_url=base_url or settings.ipstack_base_url,
            pipeline=pipeline,
            api_key=api_key if api_key is not None else settings.ipstack_api_key,
            client=client
        )

    async def resolve_location(self, ip: str) -> Optional[Location]:
        """
        Resolve an IP address to a location.

        Args:
            ip: IPv4 or IPv6 address

        Returns:
            Location, or None if the IP could not be located
        """
        try:
            data = await self._make_request(
                url=f"{self.base_url}/{ip}",
                params={"access_key": self.api_key}
            )
        except ProviderError as e:
            logger.warning("IP geolocation failed", extra={
                "provider": self.name,
                "ip": ip,
                "error": str(e)
            })
            return None

        if not isinstance(data, dict):
            logger.warning("Unexpected geolocation payload", extra={
                "provider": self.name,
                "ip": ip,
                "payload_type": type(data).__name__
            })
            return None

        # IPStack reports errors with a 200 status and a success flag
        if data.get('success') is False:
            logger.warning("IP geolocation rejected by provider", extra={
                "provider": self.name,
                "ip": ip,
                "error": data.get('error', {}).get('info')
            })
            return None

        city = data.get('city')
        country = data.get('country_name')
        latitude = data.get('latitude')
        longitude = data.get('longitude')

        # Unknown addresses come back with empty names and 0/0 coordinates
        if not city or not country or not latitude or not longitude:
            logger.info("No location for IP", extra={"provider": self.name, "ip": ip})
            return None

        try:
            return Location(city=city, country=country, latitude=latitude, longitude=longitude)
        except ValidationError as e:
            logger.warning("Invalid geolocation for IP", extra={
                "provider": self.name,
                "ip": ip,
                "error": str(e)
            })
            return None
