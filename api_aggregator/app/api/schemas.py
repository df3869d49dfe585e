"""
Pydantic schemas for the Location Data Aggregator Service.
Wire format uses camelCase field names; Python code uses snake_case.
"""

from datetime import datetime, timezone
from typing import Annotated, List, Optional, Dict, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Location(CamelModel):
    """Geographic location resolved from an IP address."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    city: str = Field(..., description="City name")
    country: str = Field(..., description="Country name")
    latitude: float = Field(..., ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in decimal degrees")


class FilterableItem(CamelModel):
    """Item that can be filtered by category and sorted by creation time or relevance."""

    created_at: Optional[datetime] = Field(None, description="When the item was created")
    category: Optional[str] = Field(None, description="Item category")
    relevance: Optional[int] = Field(None, description="Provider specific relevance score")


class WeatherData(CamelModel):
    """Current weather conditions."""

    summary: str = Field(..., description="Short summary, e.g. 'Clear'")
    description: str = Field("", description="Detailed description")
    temp_c: float = Field(..., description="Temperature in degrees Celsius")


class AirQualityData(CamelModel):
    """Current air pollution levels."""

    aqi: int = Field(..., description="Air quality index (1-5)")
    pm25: float = Field(..., description="PM2.5 concentration, ug/m3")
    pm10: float = Field(..., description="PM10 concentration, ug/m3")


class EarthquakeEvent(FilterableItem):
    """Seismic event near the resolved location."""

    id: str = Field(..., description="Catalog event id")
    magnitude: Optional[float] = Field(None, description="Event magnitude")
    place: Optional[str] = Field(None, description="Human readable place")
    url: Optional[str] = Field(None, description="Event details page")


# Known payloads are tried in order so a cached entry parses back into the same
# models a fresh aggregation returns; anything else a registered provider yields
# is kept as is.
ProviderPayload = Annotated[
    Union[WeatherData, AirQualityData, List[EarthquakeEvent], Any],
    Field(union_mode="left_to_right")
]


class AggregatedItem(CamelModel):
    """Composite record of one location and every provider's result."""

    city: str
    country: str
    latitude: float
    longitude: float
    data: Dict[str, ProviderPayload] = Field(default_factory=dict, description="Provider name to provider result")


class PerformanceBuckets(CamelModel):
    """Request counts by latency tier."""

    fast: int = 0
    average: int = 0
    slow: int = 0


class ApiStatistics(CamelModel):
    """Latency summary for one provider."""

    api_name: str
    total_requests: int
    average_response_time: float
    performance_buckets: PerformanceBuckets


class StatisticsResponse(CamelModel):
    """Model for statistics endpoint response."""

    statistics: List[ApiStatistics] = Field(default_factory=list)


class CircuitBreakerStatus(CamelModel):
    """Model for circuit breaker status."""

    provider: str = Field(..., description="Provider name")
    state: Literal["closed", "open", "half_open"] = Field(..., description="Circuit state")
    failure_count: int = Field(0, description="Number of consecutive failures")
    open_until: Optional[datetime] = Field(None, description="When an open circuit allows a trial call")


class HealthResponse(CamelModel):
    """Model for health check response."""

    status: Literal["healthy", "unhealthy"] = Field(..., description="Service status")
    timestamp: datetime = Field(default_factory=utcnow, description="Health check timestamp")
    version: str = Field(..., description="Service version")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")
    redis_connected: bool = Field(..., description="Redis connection status")
    circuits: List[CircuitBreakerStatus] = Field(default_factory=list, description="Circuit breaker status")


class ErrorResponse(CamelModel):
    """Model for error responses."""

    error: str = Field(..., description="Error message")
    error_code: str = Field(..., description="Error code")
    timestamp: datetime = Field(default_factory=utcnow, description="Error timestamp")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
