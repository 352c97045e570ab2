from __future__ import annotations

import json
import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from healthmon.services.monitoring import HealthMonitor, MonitoredHTTPError

logger = logging.getLogger("healthmon.request")


class MonitoringMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, monitor: HealthMonitor) -> None:
        super().__init__(app)
        self.monitor = monitor

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        self.monitor.record_request()
        context = f"{request.method} {request.url.path}"

        try:
            response = await call_next(request)
        except Exception:
            payload = {
                "event": "request_error",
                "method": request.method,
                "path": request.url.path,
                "status_code": 500,
            }
            logger.exception(json.dumps(payload))
            self.monitor.record_error(MonitoredHTTPError(request.method, 500), context)
            raise

        if response.status_code >= 400:
            self.monitor.record_error(MonitoredHTTPError(request.method, response.status_code), context)

        return response


def get_monitor(request: Request) -> HealthMonitor:
    return request.app.state.monitor
