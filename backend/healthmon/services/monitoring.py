from __future__ import annotations

import logging
import time
import traceback
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Any, TypeVar

logger = logging.getLogger("healthmon.monitor")

T = TypeVar("T")

DEGRADED_ERROR_RATE = 0.10
UNHEALTHY_ERROR_RATE = 0.50


class MonitoredHTTPError(RuntimeError):
    """Synthetic failure recorded for responses with an error status code."""

    def __init__(self, method: str, status_code: int):
        super().__init__(f"HTTP {status_code} on {method}")
        self.method = method
        self.status_code = status_code


@dataclass
class ErrorSnapshot:
    message: str
    stack: str
    context: str
    timestamp: str


def format_uptime(ms: int) -> str:
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h {minutes % 60}m"
    if hours > 0:
        return f"{hours}h {minutes % 60}m {seconds % 60}s"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def classify_error_rate(error_rate: float) -> str:
    if error_rate < DEGRADED_ERROR_RATE:
        return "healthy"
    if error_rate < UNHEALTHY_ERROR_RATE:
        return "degraded"
    return "unhealthy"


def _error_message(error: BaseException) -> str:
    try:
        message = str(error)
    except Exception:
        return "Unknown error"
    return message or "Unknown error"


def _error_stack(error: BaseException) -> str:
    if error.__traceback__ is None:
        return "No stack trace"
    try:
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    except Exception:
        return "No stack trace"


class HealthMonitor:
    """Request, error and database counters for one process.

    Created once by the application factory and shared by reference with the
    middleware, the instrumentation wrappers and the health routes. Recording
    never raises; a failure while logging an error is reduced to a notice.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._lock = Lock()
        self._clock = clock
        self._started_ms = self._now_ms()
        self._request_count = 0
        self._error_count = 0
        self._db_connections = 0
        self._db_errors = 0
        self._last_error: ErrorSnapshot | None = None
        self._last_health_check: str | None = None

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    def _iso(self, ms: int) -> str:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()

    def record_request(self) -> None:
        with self._lock:
            self._request_count += 1

    def record_db_connection(self) -> None:
        with self._lock:
            self._db_connections += 1

    def record_error(self, error: BaseException, context: str = "unknown") -> None:
        self._capture(error, context, database=False)

    def record_db_error(self, error: BaseException) -> None:
        self._capture(error, "database", database=True)

    def _capture(self, error: BaseException, context: str, *, database: bool) -> None:
        snapshot = ErrorSnapshot(
            message=_error_message(error),
            stack=_error_stack(error),
            context=context,
            timestamp=self._iso(self._now_ms()),
        )

        with self._lock:
            if database:
                self._db_errors += 1
            self._error_count += 1
            self._last_error = snapshot

        try:
            logger.error("Error in %s: %s", context, snapshot.message, exc_info=error)
        except Exception:
            with suppress(Exception):
                logger.error("Failed to log error")

    def update_health_check(self) -> None:
        timestamp = self._iso(self._now_ms())
        with self._lock:
            self._last_health_check = timestamp

    def reset(self) -> None:
        with self._lock:
            self._request_count = 0
            self._error_count = 0
            self._db_connections = 0
            self._db_errors = 0
            self._last_error = None
            self._last_health_check = None

    def get_health_status(self) -> dict[str, Any]:
        with self._lock:
            now_ms = self._now_ms()
            request_count = self._request_count
            error_count = self._error_count
            db_connections = self._db_connections
            db_errors = self._db_errors
            last_error = asdict(self._last_error) if self._last_error is not None else None
            last_health_check = self._last_health_check

        uptime_ms = max(0, now_ms - self._started_ms)
        error_rate = error_count / request_count if request_count > 0 else 0.0

        if db_connections > 0:
            db_error_rate = db_errors / db_connections
            db_error_rate_pct = f"{db_error_rate * 100:.2f}%"
        else:
            db_error_rate = 0.0
            db_error_rate_pct = "0%"

        return {
            "status": classify_error_rate(error_rate),
            "uptime": {"ms": uptime_ms, "human": format_uptime(uptime_ms)},
            "metrics": {
                "request_count": request_count,
                "error_count": error_count,
                "db_connections": db_connections,
                "db_errors": db_errors,
                "uptime_start": self._iso(self._started_ms),
                "last_error": last_error,
                "last_health_check": last_health_check,
                "error_rate": error_rate,
                "error_rate_pct": f"{error_rate * 100:.2f}%",
                "db_error_rate": db_error_rate,
                "db_error_rate_pct": db_error_rate_pct,
            },
            "timestamp": self._iso(now_ms),
        }


async def with_monitoring(
    monitor: HealthMonitor,
    operation: Callable[[], Awaitable[T]],
    context: str = "unknown",
) -> T:
    monitor.record_request()
    try:
        return await operation()
    except Exception as exc:
        monitor.record_error(exc, context)
        raise


async def with_db_monitoring(
    monitor: HealthMonitor,
    operation: Callable[[], Awaitable[T]],
    context: str = "database",
) -> T:
    monitor.record_db_connection()
    try:
        return await operation()
    except Exception as exc:
        monitor.record_db_error(exc)
        logger.debug("database operation %s failed", context)
        raise
