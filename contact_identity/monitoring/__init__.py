"""
Monitoring Module

Provides Prometheus metrics for the identity service.
"""

from contact_identity.monitoring.metrics import Metrics, get_metrics

__all__ = [
    "Metrics",
    "get_metrics",
]
