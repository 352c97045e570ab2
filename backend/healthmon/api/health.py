import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from healthmon.core.database import get_engine, ping_database
from healthmon.core.monitoring_middleware import get_monitor
from healthmon.schemas.health import HealthCheckResponse, HealthMonitoringSummary
from healthmon.services.monitoring import HealthMonitor, with_db_monitoring

logger = logging.getLogger("healthmon.health")

router = APIRouter(tags=["health"])

STATUS_CODES = {
    "OK": status.HTTP_200_OK,
    "DEGRADED": status.HTTP_503_SERVICE_UNAVAILABLE,
    "ERROR": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


async def _probe(monitor: HealthMonitor, engine: Engine) -> None:
    await with_db_monitoring(monitor, lambda: run_in_threadpool(ping_database, engine), context="health probe")


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(
    request: Request,
    response: Response,
    monitor: HealthMonitor = Depends(get_monitor),
    engine: Engine = Depends(get_engine),
) -> HealthCheckResponse:
    health_status = "OK"
    database = "disconnected"
    auto_restart = False
    error: str | None = None

    monitor.update_health_check()

    try:
        await _probe(monitor, engine)
        database = "connected"
    except SQLAlchemyError as exc:
        logger.error("health check database probe failed: %s", exc)
        error = str(exc)
        health_status = "DEGRADED"

        # Drop pooled connections so the retry opens a fresh one.
        engine.dispose()
        try:
            await _probe(monitor, engine)
            database = "connected (auto-restarted)"
            health_status = "OK"
            auto_restart = True
            logger.info("database connection restored after pool reset")
        except SQLAlchemyError:
            logger.exception("database auto-restart failed")
            health_status = "ERROR"

    snapshot = monitor.get_health_status()
    metrics = snapshot["metrics"]

    response.status_code = STATUS_CODES[health_status]
    return HealthCheckResponse(
        status=health_status,
        timestamp=datetime.now(timezone.utc).isoformat(),
        environment=request.app.state.settings.environment,
        database=database,
        auto_restart=auto_restart,
        monitoring=HealthMonitoringSummary(
            uptime=snapshot["uptime"]["human"],
            requests=metrics["request_count"],
            errors=metrics["error_count"],
            error_rate=metrics["error_rate_pct"],
            db_connections=metrics["db_connections"],
            db_error_rate=metrics["db_error_rate_pct"],
            last_health_check=metrics["last_health_check"],
        ),
        error=error,
    )
