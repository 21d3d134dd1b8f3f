"""Health check endpoints for monitoring application status."""

from datetime import datetime
from datetime import timezone

from fastapi import APIRouter
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

ROUTER_HEALTH = APIRouter(tags=["Health"])

SERVICE_NAME = "VDR API"


def _health_payload(health_status: str, **extra) -> dict:
    return {
        "status": health_status,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": SERVICE_NAME,
        "version": "v1",
        **extra,
    }


@ROUTER_HEALTH.get(
    "/health",
    summary="Health check endpoint",
    description="Basic health check that returns application status and metadata",
    responses={
        status.HTTP_200_OK: {
            "description": "Application is healthy",
            "content": {
                "application/json": {
                    "example": {
                        "status": "healthy",
                        "timestamp": "2026-01-05T12:00:00.000000Z",
                        "service": SERVICE_NAME,
                        "version": "v1",
                        "warehouse": "connected",
                    }
                }
            },
        }
    },
)
async def health_check(request: Request):
    """
    Basic health check endpoint.

    Reports whether the warehouse connection is up but never fails because of it,
    so a slow database start does not get the instance recycled.

    Used by:
    - Azure Web App health monitoring
    - Load balancers
    """
    warehouse = request.app.state.warehouse
    response_data = _health_payload(
        "healthy",
        warehouse="connected" if warehouse.is_ready else "connecting",
    )

    logger.debug("Health check requested", status="healthy", warehouse_ready=warehouse.is_ready)

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response_data,
    )


@ROUTER_HEALTH.get("/health/live", summary="Liveness probe")
async def liveness():
    """The process is up and serving requests."""
    return JSONResponse(status_code=status.HTTP_200_OK, content=_health_payload("alive"))


@ROUTER_HEALTH.get(
    "/health/ready",
    summary="Readiness probe",
    responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"description": "Warehouse not connected yet"}},
)
async def readiness(request: Request):
    """Ready once the warehouse answers ``SELECT 1``."""
    if not await request.app.state.warehouse.health_check():
        logger.warning("Readiness check failed: warehouse not ready")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=_health_payload("unavailable", warehouse="not ready"),
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=_health_payload("ready", warehouse="connected"))
