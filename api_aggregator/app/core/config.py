"""
Configuration management for the Location Data Aggregator Service.
Uses pydantic-settings for environment variable management.
"""

from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application metadata
    app_name: str = Field(default="Location Data Aggregator")
    app_version: str = Field(default="1.0.0")
    debug: bool = Field(default=False)
    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)

    # Redis configuration
    redis_host: str = Field(default="localhost")
    redis_port: int = Field(default=6379)
    redis_db: int = Field(default=0)
    redis_password: Optional[str] = Field(default=None)

    # API keys and endpoints for data providers
    openweathermap_api_key: str = Field(default="")
    openweathermap_base_url: str = Field(default="https://api.openweathermap.org/data/2.5")
    ipstack_api_key: str = Field(default="")
    ipstack_base_url: str = Field(default="https://api.ipstack.com")

    # USGS earthquake catalog (no key required)
    usgs_base_url: str = Field(default="https://earthquake.usgs.gov/fdsnws/event/1")
    earthquake_radius_km: float = Field(default=500.0)
    earthquake_lookback_days: int = Field(default=30)

    # Resilience configuration
    retry_count: int = Field(default=3)
    attempt_timeout: float = Field(default=10.0)  # seconds, per attempt
    circuit_breaker_failure_threshold: int = Field(default=3)
    circuit_breaker_timeout: float = Field(default=30.0)  # seconds open before half-open

    # Cache TTL settings (in seconds)
    aggregation_cache_ttl: int = Field(default=300)  # 5 minutes

    # Used when the caller sits on a loopback/private network
    fallback_ip: str = Field(default="8.8.8.8")

    # Logging configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")

    @field_validator('retry_count', 'circuit_breaker_failure_threshold')
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        """Validate counters are not negative."""
        if v < 0:
            raise ValueError("value must not be negative")
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = {'json', 'text'}
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {', '.join(valid_formats)}")
        return v.lower()

    def get_redis_url(self) -> str:
        """Get Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


# Global settings instance
settings = Settings()


class ProviderConfig:
    """Logical provider names and cache key templates."""

    # Names used as merge keys and statistics keys
    WEATHER = "Weather"
    AIR_QUALITY = "AirQuality"
    EARTHQUAKES = "Earthquakes"
    IPSTACK = "IpStack"

    CACHE_KEYS = {
        'aggregated': 'Aggregated:{ip}',
    }


provider_config = ProviderConfig()
