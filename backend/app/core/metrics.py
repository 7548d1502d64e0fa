"""
Prometheus Metrics Collection for the Continuous Releases Backend

This module provides metrics for monitoring the publish service in a
multi-pod Kubernetes environment. All metrics are designed to work correctly
when multiple backend containers run simultaneously.
"""

import logging
import re
import time
from importlib.metadata import version as get_version
from typing import Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# =============================================================================
# Application Info Metrics
# =============================================================================

# Get version from package metadata (pyproject.toml)
try:
    APP_VERSION = get_version("continuous-releases")
except Exception:
    APP_VERSION = "unknown"

app_info = Info("continuous_releases_app", "Application information")
app_info.info(
    {
        "version": APP_VERSION,
        "app_name": "Continuous Releases",
    }
)

# =============================================================================
# HTTP Request Metrics
# =============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint and status",
    ["method", "endpoint", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests currently being processed",
    ["method", "endpoint"],
)

http_request_size_bytes = Histogram(
    "http_request_size_bytes",
    "HTTP request size in bytes",
    ["method", "endpoint"],
    buckets=(1000, 10000, 100000, 1000000, 10000000, 50000000),
)

# =============================================================================
# Publish Metrics
# =============================================================================

publish_requests_total = Counter(
    "publish_requests_total",
    "Total publish requests by outcome",
    ["status"],
)

publish_packages_total = Counter(
    "publish_packages_total",
    "Total package archives stored",
)

publish_upload_bytes_total = Counter(
    "publish_upload_bytes_total",
    "Total bytes written to blob storage by bucket",
    ["bucket"],
)

publish_upload_failures_total = Counter(
    "publish_upload_failures_total",
    "Total failed artifact uploads by reason",
    ["reason"],
)

cursor_updates_total = Counter(
    "cursor_updates_total",
    "Cursor compare-and-set outcomes",
    ["result"],
)

status_reports_failed_total = Counter(
    "status_reports_failed_total",
    "Check run and comment reporting failures by track",
    ["track"],
)

# =============================================================================
# External API Metrics
# =============================================================================

external_api_requests_total = Counter(
    "external_api_requests_total",
    "Total external API requests by service",
    ["service"],
)

external_api_errors_total = Counter(
    "external_api_errors_total",
    "Total external API errors by service",
    ["service"],
)

external_api_duration_seconds = Histogram(
    "external_api_duration_seconds",
    "External API request duration in seconds",
    ["service"],
    buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
)

# =============================================================================
# System Metrics
# =============================================================================

uptime_seconds = Gauge(
    "uptime_seconds",
    "Application uptime in seconds",
)

# Track startup time
startup_time = time.time()


def update_uptime():
    """Update the uptime metric."""
    uptime_seconds.set(time.time() - startup_time)


# =============================================================================
# Prometheus Metrics Endpoint
# =============================================================================


async def metrics_endpoint(request: Request) -> Response:
    """
    Prometheus metrics endpoint.

    This endpoint should only be accessible internally within the Kubernetes
    cluster, not through the Ingress. The ServiceMonitor will scrape this.
    """
    update_uptime()
    metrics_output = generate_latest(REGISTRY)
    return Response(content=metrics_output, media_type=CONTENT_TYPE_LATEST)


# =============================================================================
# Middleware for HTTP Metrics
# =============================================================================


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware to automatically collect HTTP request metrics.

    This middleware is designed to work correctly in a multi-pod environment
    where each pod maintains its own metrics that are scraped independently.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # Skip metrics for the /metrics endpoint itself to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        endpoint = self._normalize_path(request.url.path)

        content_length = request.headers.get("content-length")
        if content_length:
            try:
                http_request_size_bytes.labels(method=method, endpoint=endpoint).observe(int(content_length))
            except ValueError:
                pass

        http_requests_in_progress.labels(method=method, endpoint=endpoint).inc()
        start_time = time.time()
        status = 500

        try:
            response = await call_next(request)
            status = response.status_code
        except Exception as e:
            logger.error(f"Error in PrometheusMiddleware: {e}")
            raise
        finally:
            duration = time.time() - start_time
            http_request_duration_seconds.labels(method=method, endpoint=endpoint).observe(duration)
            http_requests_total.labels(method=method, endpoint=endpoint, status=status).inc()
            http_requests_in_progress.labels(method=method, endpoint=endpoint).dec()

        return response

    def _normalize_path(self, path: str) -> str:
        """
        Normalize URL paths to prevent cardinality explosion.

        Artifact download paths carry owner, repo and package names, so
        everything except the known API and template prefixes collapses
        into a single label.
        Examples:
          /template/550e8400-e29b-41d4-a716-446655440000 -> /template/{id}
          /owner/repo/pkg@abc1234 -> /{artifact}
        """
        if path.startswith("/template/"):
            return "/template/{id}"
        if path.startswith("/api/") or path.startswith("/health"):
            return re.sub(r"/\d+", "/{id}", path)
        return "/{artifact}"
