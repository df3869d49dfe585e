"""
OpenWeatherMap air pollution provider.
"""

from typing import Optional
import httpx

from .base import LocationDataProvider
from ..api.schemas import AirQualityData
from ..core.config import settings, provider_config
from ..core.logging_config import create_logger
from ..services.resilience import ResiliencePipeline

logger = create_logger(__name__)


class AirQualityProvider(LocationDataProvider):
    """AQI and particulate matter levels from the OpenWeatherMap Air Pollution API."""

    def __init__(
        self,
        pipeline: ResiliencePipeline,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(
            name=provider_config.AIR_QUALITY,
            base_url=base_url or settings.openweathermap_base_url,
            pipeline=pipeline,
            api_key=api_key if api_key is not None else settings.openweathermap_api_key,
            client=client
        )

    async def get_data(self, latitude: float, longitude: float) -> Optional[AirQualityData]:
        data = await self._make_request(
            url=f"{self.base_url}/air_pollution",
            params={
                "lat": latitude,
                "lon": longitude,
                "appid": self.api_key
            }
        )

        records = data.get('list') or []
        if not records:
            return None

        # The first record is the current reading
        current = records[0]
        components = current.get('components', {})

        return AirQualityData(
            aqi=current.get('main', {}).get('aqi', 0),
            pm25=components.get('pm2_5', 0.0),
            pm10=components.get('pm10', 0.0)
        )

    def fallback(self) -> AirQualityData:
        return AirQualityData(aqi=0, pm25=0, pm10=0)
