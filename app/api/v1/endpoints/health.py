"""Liveness and dependency health endpoints."""

import asyncio

from fastapi import APIRouter, status
from pydantic import BaseModel

from app.core.redis_client import check_redis_connection
from app.database import check_database_connection
from app.dependencies import SettingsDep

router = APIRouter()


class HealthResponse(BaseModel):
    """Liveness status."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(HealthResponse):
    """
    Liveness plus backing services.

    ``database`` and ``redis`` are pinged; the gateway and storage entries
    only report whether credentials are configured.
    """

    database: str
    redis: str
    payment_gateway: str
    storage: str


def _label(healthy: bool) -> str:
    return "healthy" if healthy else "unhealthy"


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness check",
)
async def health_check(settings: SettingsDep) -> HealthResponse:
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Dependency health check",
)
async def detailed_health_check(settings: SettingsDep) -> DetailedHealthResponse:
    """
    Check the database and Redis.

    The API keeps serving when Redis is down (logout revocation fails
    open), so that case is reported as ``degraded`` rather than failing
    the check.
    """
    db_healthy, redis_healthy = await asyncio.gather(
        check_database_connection(), check_redis_connection()
    )

    return DetailedHealthResponse(
        status="healthy" if db_healthy and redis_healthy else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        database=_label(db_healthy),
        redis=_label(redis_healthy),
        payment_gateway="configured" if settings.paystack_secret_key else "not_configured",
        storage="configured"
        if settings.supabase_url and settings.supabase_service_role_key
        else "not_configured",
    )


@router.get("/ping", status_code=status.HTTP_200_OK, summary="Ping")
async def ping() -> dict[str, str]:
    return {"message": "pong"}
