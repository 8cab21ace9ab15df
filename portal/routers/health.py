### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Health Router -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Health Endpoints (no API key required)

- GET /health/live - Process is up
- GET /health/ready - App database reachable (503 when not)
- GET /health - Detailed report with database latency and memory use
"""

from fastapi import APIRouter, Depends, Response, status
from starlette.concurrency import run_in_threadpool

from portal.dependencies import get_health_service
from portal.schemas.health import HealthResponse, LivenessResponse, ReadinessResponse
from portal.services.health import HealthService

router = APIRouter()


@router.get(
    "/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
)
async def live() -> LivenessResponse:
    return LivenessResponse()


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    responses={503: {"model": ReadinessResponse, "description": "Not ready"}},
)
async def ready(
    response: Response,
    service: HealthService = Depends(get_health_service),
) -> ReadinessResponse:
    result = await run_in_threadpool(service.readiness)
    if not result.ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return result


@router.get(
    "",
    response_model=HealthResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    summary="Detailed health check",
    description="Overall status is the worst of the individual checks",
)
async def health(service: HealthService = Depends(get_health_service)) -> HealthResponse:
    """
    Detailed health report

    - **database**: `SELECT 1` latency (degraded >= 1000 ms, unhealthy >= 5000 ms)
    - **memory**: Host memory use (degraded >= 80 %, unhealthy >= 90 %)
    """
    return await run_in_threadpool(service.detailed)
