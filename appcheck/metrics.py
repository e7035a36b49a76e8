"""
Prometheus metrics for token verification and key refreshes.
"""

import time
from contextlib import contextmanager
from typing import Any, Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram


class AppCheckMetrics:
    """Metrics collector for the verifier.

    Pass a dedicated ``registry`` when more than one collector lives in the
    same process (tests, multiple projects).
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        self._metrics["token_verifications_total"] = Counter(
            "appcheck_token_verifications_total",
            "Total App Check token verifications",
            ["result"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_total"] = Counter(
            "appcheck_jwks_refresh_total",
            "Total JWKS refreshes",
            ["status"],
            registry=self.registry
        )

        self._metrics["jwks_refresh_duration_seconds"] = Histogram(
            "appcheck_jwks_refresh_duration_seconds",
            "JWKS refresh duration in seconds",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_verification(self, result: str):
        """Record a verification outcome (``valid`` or an error code)."""
        self._metrics["token_verifications_total"].labels(result=result).inc()

    def record_jwks_refresh(self, status: str):
        self._metrics["jwks_refresh_total"].labels(status=status).inc()

    @contextmanager
    def time_jwks_refresh(self):
        """Context manager timing one JWKS fetch."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["jwks_refresh_duration_seconds"].observe(time.perf_counter() - start_time)


_default_metrics: Optional[AppCheckMetrics] = None


def get_metrics() -> AppCheckMetrics:
    """Return the collector bound to the default Prometheus registry."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = AppCheckMetrics()
    return _default_metrics
