"""
Prometheus Metrics

Defines and exports metrics for monitoring contact reconciliation.
"""

from contextlib import contextmanager
import time

import structlog
from prometheus_client import Counter, Histogram

logger = structlog.get_logger()

# Singleton metrics instance
_metrics: "Metrics | None" = None


class Metrics:
    """
    Prometheus metrics for the identity service.

    Tracks:
    - Identify outcomes (new cluster, new secondary, merge, plain match, failure)
    - Transaction conflicts that forced a retry
    - Identify latency
    """

    def __init__(self):
        self.identify_total = Counter(
            "contact_identity_identify_total",
            "Total identify calls by outcome",
            ["outcome"],
        )

        self.transaction_conflicts_total = Counter(
            "contact_identity_transaction_conflicts_total",
            "Identify attempts discarded because of a transaction conflict",
        )

        self.identify_duration_seconds = Histogram(
            "contact_identity_identify_duration_seconds",
            "Identify duration in seconds, retries included",
            buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
        )

        logger.info("Prometheus metrics initialized")

    def track_identify(self, outcome: str) -> None:
        self.identify_total.labels(outcome=outcome).inc()

    def track_conflict(self) -> None:
        self.transaction_conflicts_total.inc()

    @contextmanager
    def time_identify(self):
        """Context manager for timing identify calls."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.identify_duration_seconds.observe(time.perf_counter() - start)


def get_metrics() -> Metrics:
    """Get or create the singleton metrics instance."""
    global _metrics
    if _metrics is None:
        _metrics = Metrics()
    return _metrics
