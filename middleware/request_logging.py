"""
Request logging middleware. Logs method, route, status and duration.

Routes are logged by their template (/api/portfolio/{user_id}), never the
concrete path: path parameters carry user and account ids. Headers, bodies
and query strings are never logged.
"""
import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "<unmatched>"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            route = _route_template(request)
            logger.exception(
                "request_failed method=%s route=%s duration_ms=%.1f",
                request.method, route, (time.perf_counter() - start) * 1000,
                extra={"route": route},
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        status = response.status_code
        if status >= 500:
            level = logging.ERROR
        elif status >= 400:
            level = logging.WARNING
        else:
            level = logging.INFO
        route = _route_template(request)
        logger.log(
            level,
            "request_finished method=%s route=%s status=%s duration_ms=%.1f",
            request.method, route, status, duration_ms,
            extra={"route": route},
        )
        return response
