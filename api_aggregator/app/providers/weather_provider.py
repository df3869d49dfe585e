"""
OpenWeatherMap current weather provider.
"""

from typing import Optional
import httpx

from .base import LocationDataProvider
from ..api.schemas import WeatherData
from ..core.config import settings, provider_config
from ..core.logging_config import create_logger
from ..services.resilience import ResiliencePipeline

logger = create_logger(__name__)


class WeatherProvider(LocationDataProvider):
    """Current weather conditions from OpenWeatherMap."""

    def __init__(
        self,
        pipeline: ResiliencePipeline,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(
            name=provider_config.WEATHER,
            base_url=base_url or settings.openweathermap_base_url,
            pipeline=pipeline,
            api_key=api_key if api_key is not None else settings.openweathermap_api_key,
            client=client
        )

    async def get_data(self, latitude: float, longitude: float) -> Optional[WeatherData]:
        data = await self._make_request(
            url=f"{self.base_url}/weather",
            params={
                "lat": latitude,
                "lon": longitude,
                "appid": self.api_key,
                "units": "metric"
            }
        )

        conditions = data.get('weather') or []
        if not conditions:
            logger.warning("No weather conditions in response", extra={
                "provider": self.name,
                "latitude": latitude,
                "longitude": longitude
            })
            return None

        return WeatherData(
            summary=conditions[0].get('main', ''),
            description=conditions[0].get('description', ''),
            temp_c=data.get('main', {}).get('temp', 0.0)
        )

    def fallback(self) -> WeatherData:
        return WeatherData(summary="No data", description="No data available", temp_c=0)
