"""
FastAPI application for the Location Data Aggregator Service.
The lifespan builds the service container; middleware logs every request.
"""

import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import get_client_ip
from app.api.endpoints import router as api_router
from app.api.schemas import ErrorResponse
from app.core.config import settings
from app.core.exceptions import LocationUnresolvedError
from app.core.logging_config import create_logger, setup_logging
from app.services.container import ServiceContainer

setup_logging()
logger = create_logger(__name__)


def error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    body = ErrorResponse(error=error, error_code=error_code, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", by_alias=True))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build and connect the service container, release it on shutdown."""
    logger.info("Starting Location Data Aggregator Service", extra={
        "version": settings.app_version,
        "debug": settings.debug
    })

    container = ServiceContainer.create(settings)
    await container.startup()
    app.state.container = container

    logger.info("Service started", extra={
        "providers": [provider.name for provider in container.providers]
    })

    yield

    try:
        await container.shutdown()
        logger.info("Service shutdown completed")
    except Exception as e:
        logger.error("Error during service shutdown", extra={"error": str(e)})


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Weather, air quality and seismic data for the caller's location",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log each request with the caller's resolved IP and its duration."""
        started = time.perf_counter()
        context = {
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query,
            "client_ip": get_client_ip(request)
        }
        logger.info("Request received", extra=context)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed", extra={
                **context,
                "error": str(e),
                "process_time": round(time.perf_counter() - started, 4)
            })
            return error_response(500, "Internal server error", "INTERNAL_ERROR")

        process_time = time.perf_counter() - started
        logger.info("Request completed", extra={
            **context,
            "status_code": response.status_code,
            "process_time": round(process_time, 4)
        })
        response.headers["X-Process-Time"] = str(process_time)
        return response

    @app.exception_handler(LocationUnresolvedError)
    async def location_unresolved_handler(request: Request, exc: LocationUnresolvedError):
        # The caller sent an IP we cannot place; not a server fault
        logger.warning("Location unresolved", extra={"ip": exc.ip, "path": request.url.path})
        return error_response(422, exc.message, "LOCATION_UNRESOLVED", {"ip": exc.ip})

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc):
        return error_response(404, "Endpoint not found", "NOT_FOUND", {
            "path": request.url.path,
            "method": request.method
        })

    app.include_router(api_router, tags=["Aggregation API"])

    @app.get("/", include_in_schema=False)
    async def root(request: Request):
        container = getattr(request.app.state, "container", None)
        return {
            "service": settings.app_name,
            "version": settings.app_version,
            "providers": [provider.name for provider in container.providers] if container else [],
            "docs_url": "/docs" if settings.debug else "disabled",
            "timestamp": datetime.now(timezone.utc)
        }

    @app.get("/healthz", include_in_schema=False)
    async def healthz(request: Request):
        """Liveness probe: healthy while Redis answers."""
        if await request.app.state.container.cache.health_check():
            return {"status": "healthy"}
        return JSONResponse(status_code=503, content={"status": "unhealthy", "redis": False})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
        access_log=False
    )
