from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware:
    """Log method, path, status and duration of every API request."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        started = time.monotonic()
        response = self.get_response(request)
        if request.path.startswith("/api/"):
            elapsed_ms = (time.monotonic() - started) * 1000
            logger.info(
                "%s %s -> %s (%.1f ms)",
                request.method,
                request.path,
                response.status_code,
                elapsed_ms,
            )
        return response
