from typing import Literal

from pydantic import BaseModel


class LastErrorRead(BaseModel):
    message: str
    stack: str
    context: str
    timestamp: str


class UptimeRead(BaseModel):
    ms: int
    human: str


class MonitorMetricsRead(BaseModel):
    request_count: int
    error_count: int
    db_connections: int
    db_errors: int
    uptime_start: str
    last_error: LastErrorRead | None = None
    last_health_check: str | None = None
    error_rate: float
    error_rate_pct: str
    db_error_rate: float
    db_error_rate_pct: str


class HealthStatusRead(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    uptime: UptimeRead
    metrics: MonitorMetricsRead
    timestamp: str
