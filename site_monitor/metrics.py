"""
Prometheus metrics collection for Site Monitor.
"""

import time
from typing import Any, Dict

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    generate_latest,
)

from site_monitor.logger import get_logger, log_metrics_collection
from site_monitor.models import CheckResult


class MetricsCollector:
    """Prometheus metrics collector for site checks."""

    def __init__(self) -> None:
        self.logger = get_logger("metrics")
        self.registry = CollectorRegistry()

        # Availability metrics
        self.site_up = Gauge(
            "site_up",
            "Whether the last check classified the site as up (1) or down (0)",
            ["url"],
            registry=self.registry,
        )

        self.site_http_status_code = Gauge(
            "site_http_status_code",
            "HTTP status code of the last check",
            ["url"],
            registry=self.registry,
        )

        self.site_response_duration_seconds = Histogram(
            "site_response_duration_seconds",
            "Time until response headers were received",
            ["url"],
            registry=self.registry,
        )

        self.site_last_check_timestamp = Gauge(
            "site_last_check_timestamp",
            "Last check time (Unix timestamp)",
            ["url"],
            registry=self.registry,
        )

        self.site_check_errors_total = Counter(
            "site_check_errors_total",
            "Checks that produced no result",
            ["url", "error_type"],
            registry=self.registry,
        )

        # Certificate metrics
        self.site_cert_valid = Gauge(
            "site_cert_valid",
            "Whether the presented certificate is valid (1) or not (0)",
            ["url"],
            registry=self.registry,
        )

        self.site_cert_expiration_timestamp = Gauge(
            "site_cert_expiration_timestamp",
            "Certificate expiration time (Unix timestamp)",
            ["url"],
            registry=self.registry,
        )

        self.site_cert_info = Info(
            "site_cert_info",
            "Certificate information with labels",
            ["url"],
            registry=self.registry,
        )

        self._last_update = 0.0

        self.logger.info("Metrics collector initialized")

    def record_result(self, result: CheckResult, up: bool) -> None:
        """
        Update metrics from a check result.

        Args:
            result: Check result
            up: Status classification of the result
        """
        url = result.url
        duration = result.duration.total_seconds()

        self.site_up.labels(url=url).set(1 if up else 0)
        self.site_http_status_code.labels(url=url).set(result.status_code)
        self.site_response_duration_seconds.labels(url=url).observe(duration)
        self.site_last_check_timestamp.labels(url=url).set(result.end.timestamp())

        cert = result.cert_info
        if cert is not None:
            self.site_cert_valid.labels(url=url).set(1 if cert.is_valid else 0)
            if cert.valid_to is not None:
                self.site_cert_expiration_timestamp.labels(url=url).set(cert.valid_to.timestamp())
            self.site_cert_info.labels(url=url).info(
                {
                    "subject": cert.subject,
                    "issuer": cert.issuer,
                    "dns_names": ",".join(cert.dns_names),
                    "error": cert.error_msg or "",
                }
            )

        self._last_update = time.time()
        log_metrics_collection(self.logger, "site_up", 1.0 if up else 0.0, {"url": url})

    def record_error(self, url: str, error: Exception) -> None:
        """Update metrics for a check that produced no result."""
        error_type = type(error).__name__
        self.site_up.labels(url=url).set(0)
        self.site_last_check_timestamp.labels(url=url).set(time.time())
        self.site_check_errors_total.labels(url=url, error_type=error_type).inc()

        self._last_update = time.time()
        log_metrics_collection(self.logger, "site_check_errors_total", 1.0, {"url": url})

    def get_metrics(self) -> str:
        """Generate Prometheus exposition text."""
        return generate_latest(self.registry).decode("utf-8")

    def get_content_type(self) -> str:
        """Get content type for metrics endpoint."""
        return CONTENT_TYPE_LATEST

    def get_registry_status(self) -> Dict[str, Any]:
        """Get Prometheus registry status for health checks."""
        metrics_count = len(list(self.registry.collect()))
        return {
            "prometheus_registry": {
                "status": "healthy",
                "metrics_count": metrics_count,
                "last_update": self._last_update,
            }
        }
