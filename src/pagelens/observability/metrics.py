"""
Prometheus metrics for audit runs and the computed-artifact cache.

Metrics live in the default registry. Collectors are looked up by name before
being created, so reloading this module (as test runners do) reuses them
instead of failing on duplicate registration.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Sequence

import structlog
from prometheus_client import REGISTRY, Counter, Histogram, start_http_server

if TYPE_CHECKING:
    from pagelens.config.config import MonitoringConfig

logger = structlog.get_logger(__name__)

# Most audits finish in milliseconds; trace-heavy ones can take seconds.
AUDIT_DURATION_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _metric(metric_cls: Any, name: str, documentation: str, labels: Sequence[str], **kwargs: Any) -> Any:
    existing = REGISTRY._names_to_collectors.get(name)
    if existing is not None:
        return existing
    return metric_cls(name, documentation, list(labels), **kwargs)


def _create_metrics() -> Dict[str, Any]:
    return {
        "audits_total": _metric(
            Counter,
            "pagelens_audits_total",
            "Audits run, by resulting score display mode",
            ["mode"],
        ),
        "audit_duration_seconds": _metric(
            Histogram,
            "pagelens_audit_duration_seconds",
            "Time taken to run a single audit",
            ["audit"],
            buckets=AUDIT_DURATION_BUCKETS,
        ),
        "computed_requests_total": _metric(
            Counter,
            "pagelens_computed_requests_total",
            "Computed artifact requests, by cache outcome",
            ["artifact", "outcome"],
        ),
        "runs_total": _metric(
            Counter,
            "pagelens_runs_total",
            "Completed or aborted runs",
            ["status"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()


def increment(name: str, value: float = 1.0, **labels: Any) -> None:
    """Increment a counter metric."""
    metric = METRICS[name]
    if labels:
        metric.labels(**labels).inc(value)
    else:
        metric.inc(value)


def observe(name: str, value: float, **labels: Any) -> None:
    """Observe a histogram metric."""
    metric = METRICS[name]
    if labels:
        metric.labels(**labels).observe(value)
    else:
        metric.observe(value)


def start_metrics_server(config: MonitoringConfig) -> bool:
    """Start the Prometheus exporter if a port is configured."""
    if not (config.enabled and config.prometheus_port):
        return False
    start_http_server(config.prometheus_port)
    logger.info("Prometheus metrics server started", port=config.prometheus_port)
    return True
