"""
FastAPI dependencies: service lookup and client IP detection.
"""

from typing import Optional

from fastapi import Request

from ..core.config import settings
from ..core.logging_config import create_logger
from ..services.aggregation import AggregationService, BaseAggregationService
from ..services.cache import CacheService
from ..services.container import ServiceContainer
from ..services.statistics import StatisticsService

logger = create_logger(__name__)

UNKNOWN_IP = "unknown"


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_aggregation_service(request: Request) -> BaseAggregationService:
    """The cache-decorated aggregation service."""
    return get_container(request).cached_aggregation


def get_aggregator(request: Request) -> AggregationService:
    """The undecorated aggregator, for provider status reporting."""
    return get_container(request).aggregation


def get_statistics_service(request: Request) -> StatisticsService:
    return get_container(request).statistics


def get_cache_service(request: Request) -> CacheService:
    return get_container(request).cache


def is_local_or_docker_ip(ip: Optional[str]) -> bool:
    """Loopback, Docker bridge and home-LAN addresses cannot be geolocated."""
    if not ip or not ip.strip():
        return True

    return (
        ip in ("::1", "127.0.0.1")
        or ip.startswith("::ffff:127.")
        or ip.startswith("::ffff:172.")
        or ip.startswith("172.")
        or ip.startswith("192.168.")
    )


def get_client_ip(request: Request) -> str:
    """
    Best guess at the caller's public IP.

    Order: first X-Forwarded-For entry, X-Real-IP, then the socket peer.
    Local peers map to the configured fallback IP.
    """
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for and forwarded_for.strip():
        ip = forwarded_for.split(",")[0].strip()
        logger.debug("IP from X-Forwarded-For", extra={"ip": ip})
        return ip or UNKNOWN_IP

    real_ip = request.headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        logger.debug("IP from X-Real-IP", extra={"ip": real_ip})
        return real_ip.strip()

    connection_ip = request.client.host if request.client else None
    if is_local_or_docker_ip(connection_ip):
        logger.debug("Detected local/Docker IP, using fallback", extra={
            "ip": connection_ip,
            "fallback_ip": settings.fallback_ip
        })
        return settings.fallback_ip

    return connection_ip or UNKNOWN_IP
