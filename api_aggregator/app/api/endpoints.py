"""
FastAPI endpoints for the Location Data Aggregator Service.
"""

from datetime import datetime, timezone
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse

from ..api.schemas import (
    AggregatedItem, CircuitBreakerStatus, HealthResponse, StatisticsResponse
)
from ..core.config import settings
from ..core.exceptions import LocationUnresolvedError
from ..core.logging_config import create_logger
from ..services.aggregation import AggregationService, BaseAggregationService
from ..services.cache import CacheService
from ..services.statistics import StatisticsService
from .dependencies import (
    UNKNOWN_IP, get_aggregation_service, get_aggregator, get_cache_service,
    get_client_ip, get_statistics_service
)

logger = create_logger(__name__)

# Create API router
router = APIRouter()

# Application startup time for uptime calculation
app_start_time = datetime.now(timezone.utc)


@router.get(
    "/api/aggregation",
    response_model=AggregatedItem,
    responses={400: {"description": "No usable IP address"}}
)
async def get_aggregated_data(
    request: Request,
    ip: Optional[str] = Query(None, description="IP address; detected from the request when omitted"),
    category: Optional[str] = Query(None, description="Keep only items of this category"),
    sort_by: Optional[str] = Query(None, alias="sortBy", description="createdAt, relevance or category"),
    descending: bool = Query(False, description="Sort descending when sortBy is given"),
    aggregation_service: BaseAggregationService = Depends(get_aggregation_service)
):
    """
    Get aggregated weather, air quality and seismic data for the location of an IP.

    Args:
        ip: IP address (auto-detected if not provided)
        category: Filter filterable provider data by category
        sortBy: Sort field for filterable provider data
        descending: Sort direction

    Returns:
        Location with one data entry per provider
    """
    if not ip or not ip.strip():
        ip = get_client_ip(request)
    ip = ip.strip()

    if not ip or ip == UNKNOWN_IP:
        logger.warning("Unable to determine client IP address")
        return PlainTextResponse(
            "Unable to determine IP address. Please provide it explicitly using ?ip=YOUR_IP",
            status_code=400
        )

    logger.info("Aggregation request received", extra={
        "ip": ip,
        "category": category,
        "sort_by": sort_by,
        "descending": descending
    })

    try:
        return await aggregation_service.get_aggregated_data(
            ip,
            category=category,
            sort_by=sort_by,
            descending=descending
        )

    except LocationUnresolvedError:
        # Mapped to a structured response by the application exception handler
        raise

    except Exception as e:
        logger.error("Failed to aggregate data", extra={
            "ip": ip,
            "error": str(e)
        })
        raise HTTPException(
            status_code=500,
            detail=f"Failed to aggregate data: {str(e)}"
        )


@router.get("/api/statistics", response_model=StatisticsResponse)
async def get_statistics(
    statistics_service: StatisticsService = Depends(get_statistics_service)
):
    """
    Get request statistics per external API.

    Returns:
        Total requests, average response time and performance buckets per API
    """
    logger.info("Statistics request received")
    return statistics_service.get_statistics()


@router.get("/api/providers/status", response_model=List[CircuitBreakerStatus])
async def get_provider_status(
    aggregator: AggregationService = Depends(get_aggregator)
):
    """
    Get circuit breaker state of every provider client.
    """
    return aggregator.get_circuit_breaker_status()


@router.get("/health", response_model=HealthResponse)
async def health_check(
    cache_service: CacheService = Depends(get_cache_service),
    aggregator: AggregationService = Depends(get_aggregator)
):
    """
    Health check endpoint.
    Reports Redis connectivity and circuit breaker states.
    """
    redis_healthy = await cache_service.health_check()
    circuits = aggregator.get_circuit_breaker_status()
    uptime_seconds = (datetime.now(timezone.utc) - app_start_time).total_seconds()

    # Redis is optional for serving requests; all circuits open is not
    all_open = bool(circuits) and all(circuit.state == "open" for circuit in circuits)

    return HealthResponse(
        status="unhealthy" if all_open else "healthy",
        version=settings.app_version,
        uptime_seconds=uptime_seconds,
        redis_connected=redis_healthy,
        circuits=circuits
    )
