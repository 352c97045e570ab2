import logging

from fastapi import APIRouter, Depends

from healthmon.core.monitoring_middleware import get_monitor
from healthmon.core.security import require_maintenance_token
from healthmon.schemas.monitoring import HealthStatusRead
from healthmon.services.monitoring import HealthMonitor

logger = logging.getLogger("healthmon.maintenance")

router = APIRouter(prefix="/monitoring", tags=["monitoring"])


@router.get("/status", response_model=HealthStatusRead)
def get_status(monitor: HealthMonitor = Depends(get_monitor)) -> HealthStatusRead:
    return HealthStatusRead(**monitor.get_health_status())


@router.post("/reset", response_model=HealthStatusRead, dependencies=[Depends(require_maintenance_token)])
def reset_metrics(monitor: HealthMonitor = Depends(get_monitor)) -> HealthStatusRead:
    monitor.reset()
    logger.info("monitoring counters reset")
    return HealthStatusRead(**monitor.get_health_status())
