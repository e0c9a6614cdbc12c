"""
Prometheus Metrics Middleware for the Marketplace
Automatic metrics collection for HTTP requests
"""

import logging
import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..services.metrics import get_metrics_instance

logger = logging.getLogger(__name__)

# Replace dynamic segments so label cardinality stays bounded
NORMALIZATIONS = [
    (re.compile(r"/[a-f0-9-]{36}"), "/{uuid}"),
    (re.compile(r"^/api/storage/.*"), "/api/storage/{path}"),
    (re.compile(r"^(/api/(?:extensions|publishers|publish/extensions))/[^/]+"), r"\1/{slug}"),
    (re.compile(r"/versions/[^/]+/publish$"), "/versions/{version}/publish"),
]


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically collect Prometheus metrics for HTTP requests
    """

    def __init__(self, app, service_name: str = "marketplace"):
        super().__init__(app)
        self.service_name = service_name
        self.metrics = get_metrics_instance()

        self.metrics.set_service_up(service_name, True)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and collect metrics"""
        start_time = time.time()
        method = request.method
        endpoint = self._normalize_endpoint(request.url.path)

        try:
            response = await call_next(request)
        except Exception:
            self.metrics.record_http_request(method, endpoint, 500, time.time() - start_time)
            raise

        self.metrics.record_http_request(method, endpoint, response.status_code, time.time() - start_time)
        return response

    def _normalize_endpoint(self, path: str) -> str:
        normalized_path = path
        for pattern, replacement in NORMALIZATIONS:
            normalized_path = pattern.sub(replacement, normalized_path)

        if len(normalized_path) > 100:
            normalized_path = normalized_path[:97] + "..."
        return normalized_path
