"""
Prometheus Metrics Collection for the Marketplace
Publication pipeline, download and authentication counters
"""

import logging

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest

logger = logging.getLogger(__name__)

# Create registry for metrics
registry = CollectorRegistry()

# HTTP Metrics
http_requests_total = Counter(
    "marketplace_http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "marketplace_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
    registry=registry,
)

service_up = Gauge("marketplace_service_up", "Service up status", ["service"], registry=registry)

# Publication Metrics
versions_created_total = Counter(
    "marketplace_versions_created_total",
    "Total extension versions uploaded",
    registry=registry,
)

versions_published_total = Counter(
    "marketplace_versions_published_total",
    "Total extension versions published",
    ["first_release"],
    registry=registry,
)

bundle_size_bytes = Histogram(
    "marketplace_bundle_size_bytes",
    "Uploaded bundle size in bytes",
    buckets=[1e4, 1e5, 1e6, 5e6, 1e7, 2.5e7, 5e7],
    registry=registry,
)

# Download Metrics
downloads_recorded_total = Counter(
    "marketplace_downloads_recorded_total",
    "Total download events recorded",
    registry=registry,
)

download_record_failures_total = Counter(
    "marketplace_download_record_failures_total",
    "Download events that could not be recorded",
    registry=registry,
)

# Authentication Metrics
authentication_attempts_total = Counter(
    "marketplace_authentication_attempts_total",
    "Total authentication attempts",
    ["result", "method"],
    registry=registry,
)


class MarketplaceMetrics:
    """Centralized metrics collection and management"""

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics"""
        http_requests_total.labels(method=method, endpoint=endpoint, status=str(status_code)).inc()
        http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)

    def record_version_created(self, size: int):
        versions_created_total.inc()
        bundle_size_bytes.observe(size)

    def record_version_published(self, first_release: bool):
        versions_published_total.labels(first_release=str(first_release).lower()).inc()

    def record_download(self, success: bool):
        if success:
            downloads_recorded_total.inc()
        else:
            download_record_failures_total.inc()

    def record_authentication_attempt(self, result: str, method: str):
        """Record authentication attempt"""
        authentication_attempts_total.labels(result=result, method=method).inc()

    def set_service_up(self, service: str, is_up: bool):
        service_up.labels(service=service).set(1 if is_up else 0)

    def get_metrics(self) -> bytes:
        """Get all metrics in Prometheus format"""
        try:
            return generate_latest(registry)
        except Exception as e:
            logger.error(f"Error generating metrics: {e}")
            return b""


# Global metrics instance
metrics = MarketplaceMetrics()


def get_metrics_instance() -> MarketplaceMetrics:
    """Get the global metrics instance"""
    return metrics
