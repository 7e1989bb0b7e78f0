import time

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.context import current_request


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Keep the current Request in a contextvar so services can read it, and log timing."""

    async def dispatch(self, request, call_next):
        token = current_request.set(request)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            current_request.reset(token)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms"
        )
        return response
