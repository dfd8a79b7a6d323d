"""
Prometheus metrics for the OIDC Gateway.
"""

from typing import Any, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest, start_http_server


class MetricsCollector:
    """Centralized metrics collector for a gateway process.

    Each collector owns its registry so several gateways (e.g. in tests) can
    coexist in one interpreter without duplicate-timeseries errors.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up gateway metrics."""
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Authentication metrics
        self._metrics["auth_failures_total"] = Counter(
            "auth_failures_total",
            "Rejected requests by failure code",
            ["code"],
            registry=self.registry
        )

        self._metrics["provider_discoveries_total"] = Counter(
            "provider_discoveries_total",
            "Identity provider discovery attempts",
            ["status"],
            registry=self.registry
        )

        self._metrics["provider_discovery_duration_seconds"] = Histogram(
            "provider_discovery_duration_seconds",
            "Identity provider discovery duration in seconds",
            registry=self.registry
        )

        self._metrics["jwks_refresh_total"] = Counter(
            "jwks_refresh_total",
            "Total JWKS refreshes triggered by unknown key ids",
            ["status"],
            registry=self.registry
        )

    def start_metrics_server(self, port: int = 9090):
        """Start the Prometheus metrics server."""
        start_http_server(port, registry=self.registry)

    def export(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_auth_failure(self, code: str):
        """Record a rejected request."""
        self._metrics["auth_failures_total"].labels(code=code).inc()

    def record_discovery(self, status: str, duration: float):
        """Record a discovery attempt."""
        self._metrics["provider_discoveries_total"].labels(status=status).inc()
        self._metrics["provider_discovery_duration_seconds"].observe(duration)

    def record_jwks_refresh(self, status: str):
        """Record a JWKS refresh."""
        self._metrics["jwks_refresh_total"].labels(status=status).inc()

    def sample(self, name: str, **labels) -> float:
        """Return the current value of a sample, 0.0 when never observed."""
        value = self.registry.get_sample_value(name, labels or None)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
