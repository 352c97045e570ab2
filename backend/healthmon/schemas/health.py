from typing import Literal

from pydantic import BaseModel


class HealthMonitoringSummary(BaseModel):
    uptime: str
    requests: int
    errors: int
    error_rate: str
    db_connections: int
    db_error_rate: str
    last_health_check: str | None = None


class HealthCheckResponse(BaseModel):
    status: Literal["OK", "DEGRADED", "ERROR"]
    timestamp: str
    environment: str
    database: str
    auto_restart: bool
    monitoring: HealthMonitoringSummary
    error: str | None = None
