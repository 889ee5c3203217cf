"""
Utility functions for the report export service.
"""

from utils.metrics import MetricsCollector, get_metrics_collector

__all__ = [
    'MetricsCollector',
    'get_metrics_collector',
]
