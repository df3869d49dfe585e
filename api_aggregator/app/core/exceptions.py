"""
Exception hierarchy for the Location Data Aggregator Service.
"""

from typing import Optional


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str, status_code: Optional[int] = None):
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(self.message)


class TransientProviderError(ProviderError):
    """Failure worth retrying: network error, timeout, throttling or a 5xx response."""
    pass


class RateLimitError(TransientProviderError):
    """Exception raised when provider rate limit is exceeded."""
    pass


class ProviderTimeoutError(TransientProviderError):
    """Exception raised when a single attempt exceeds its timeout."""
    pass


class CircuitOpenError(ProviderError):
    """Exception raised when the circuit breaker rejects a call without attempting it."""

    def __init__(self, provider: str, retry_after: float):
        self.retry_after = retry_after
        super().__init__(f"Circuit for {provider} is open. Retry after {retry_after:.1f}s", provider)


class AuthenticationError(ProviderError):
    """Exception raised when provider authentication fails."""
    pass


class DataNotFoundError(ProviderError):
    """Exception raised when requested data is not found."""
    pass


class LocationUnresolvedError(Exception):
    """Raised when an IP address cannot be turned into a location."""

    def __init__(self, ip: str, message: str = "Could not determine location from IP."):
        self.ip = ip
        self.message = message
        super().__init__(message)


class CacheError(Exception):
    """Raised when the cache store cannot be read or written."""
    pass
