"""Service identification and health check."""

from fastapi import APIRouter
from sqlalchemy.exc import SQLAlchemyError

from src.api.dependencies import AppSettings, DatabaseHandle, RequestLogger
from src.api.schemas.results import HealthStatus, ServiceStatus

router = APIRouter(tags=["root"])


@router.get("/")
async def service_status(settings: AppSettings) -> ServiceStatus:
    """Identify the service."""
    return ServiceStatus(name=settings.app_name, version=settings.app_version)


@router.get("/health")
async def health(database: DatabaseHandle, log: RequestLogger) -> HealthStatus:
    """Health check endpoint for monitoring and container orchestration.

    The service reports itself "degraded" rather than failing when the
    database does not answer, so orchestrators can tell the two apart.
    """
    try:
        await database.ping()
    except (SQLAlchemyError, OSError) as e:
        log.warning("Database health check failed: {}", type(e).__name__)
        return HealthStatus(status="degraded", database=False)

    return HealthStatus(status="healthy", database=True)
