import logging

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from healthmon.api.health import router as health_router
from healthmon.api.monitoring import router as monitoring_router
from healthmon.core.config import Settings, settings
from healthmon.core.database import build_engine
from healthmon.core.monitoring_middleware import MonitoringMiddleware
from healthmon.services.monitoring import HealthMonitor

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


def create_app(
    app_settings: Settings | None = None,
    monitor: HealthMonitor | None = None,
    engine: Engine | None = None,
) -> FastAPI:
    app_settings = app_settings or settings
    monitor = monitor or HealthMonitor()

    app = FastAPI(title=app_settings.app_name)
    app.state.settings = app_settings
    app.state.monitor = monitor
    app.state.engine = engine or build_engine(app_settings.database_url)

    app.add_middleware(MonitoringMiddleware, monitor=monitor)

    app.include_router(health_router, prefix=app_settings.api_prefix)
    app.include_router(monitoring_router, prefix=app_settings.api_prefix)
    return app


app = create_app()
