"""
USGS earthquake catalog provider.
Returns recent seismic events around a location as filterable items.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
import httpx

from .base import LocationDataProvider
from ..api.schemas import EarthquakeEvent
from ..core.config import settings, provider_config
from ..core.logging_config import create_logger
from ..services.resilience import ResiliencePipeline

logger = create_logger(__name__)

MAX_EVENTS = 100


class EarthquakeProvider(LocationDataProvider):
    """Recent earthquakes within a radius of the location (USGS FDSN event service)."""

    requires_api_key = False

    def __init__(
        self,
        pipeline: ResiliencePipeline,
        base_url: Optional[str] = None,
        radius_km: Optional[float] = None,
        lookback_days: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(
            name=provider_config.EARTHQUAKES,
            base_url=base_url or settings.usgs_base_url,
            pipeline=pipeline,
            client=client
        )
        self.radius_km = radius_km or settings.earthquake_radius_km
        self.lookback_days = lookback_days or settings.earthquake_lookback_days

    async def get_data(self, latitude: float, longitude: float) -> List[EarthquakeEvent]:
        start_time = datetime.now(timezone.utc) - timedelta(days=self.lookback_days)

        data = await self._make_request(
            url=f"{self.base_url}/query",
            params={
                "format": "geojson",
                "latitude": latitude,
                "longitude": longitude,
                "maxradiuskm": self.radius_km,
                "starttime": start_time.strftime("%Y-%m-%dT%H:%M:%S"),
                "orderby": "time",
                "limit": MAX_EVENTS
            }
        )

        events = []
        for feature in data.get('features') or []:
            event = self._parse_feature(feature)
            if event is not None:
                events.append(event)

        logger.debug("Parsed earthquake events", extra={
            "provider": self.name,
            "count": len(events)
        })
        return events

    def _parse_feature(self, feature: dict) -> Optional[EarthquakeEvent]:
        event_id = feature.get('id')
        if not event_id:
            return None

        properties = feature.get('properties') or {}
        event_time = properties.get('time')

        return EarthquakeEvent(
            id=event_id,
            created_at=datetime.fromtimestamp(event_time / 1000, tz=timezone.utc) if event_time is not None else None,
            category=properties.get('type'),
            relevance=properties.get('sig'),
            magnitude=properties.get('mag'),
            place=properties.get('place'),
            url=properties.get('url')
        )

    def fallback(self) -> List[EarthquakeEvent]:
        return []
