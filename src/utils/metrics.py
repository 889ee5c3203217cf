"""
Metrics collection for the report export service.

Tracks request metrics (latency, errors) and export metrics
(reports sent, failures, scheduled skips) via structured logging.
"""

import threading
from collections import defaultdict
from typing import Dict, List
from loguru import logger


class MetricsCollector:
    """
    Collect and aggregate metrics for observability.

    Thread-safe in-memory metrics storage. Metrics are logged
    on demand and reset on restart.
    """

    def __init__(self):
        # Request metrics
        self.request_latencies: List[float] = []
        self.request_counts: Dict[str, int] = defaultdict(int)  # status_code -> count
        self.request_errors: int = 0

        # Export metrics
        self.exports_sent: Dict[str, int] = defaultdict(int)    # trigger -> count
        self.exports_failed: Dict[str, int] = defaultdict(int)  # trigger -> count
        self.scheduled_skips: Dict[str, int] = defaultdict(int)  # reason -> count
        self.scheduler_ticks: int = 0
        self.scheduler_tick_errors: int = 0

        # Thread lock for thread safety
        self._lock = threading.Lock()

    def record_request(self, method: str, path: str, status_code: int, latency_ms: float):
        """Record a request with its latency and status."""
        with self._lock:
            self.request_latencies.append(latency_ms)
            self.request_counts[str(status_code)] += 1
            if status_code >= 400:
                self.request_errors += 1

    def record_export(self, triggered_by: str, success: bool):
        """Record the outcome of one configuration export."""
        with self._lock:
            if success:
                self.exports_sent[triggered_by] += 1
            else:
                self.exports_failed[triggered_by] += 1

    def record_scheduled_skip(self, reason: str):
        with self._lock:
            self.scheduled_skips[reason] += 1

    def record_tick(self, failed: bool = False):
        with self._lock:
            self.scheduler_ticks += 1
            if failed:
                self.scheduler_tick_errors += 1

    def get_percentiles(self) -> Dict[str, float]:
        """Calculate latency percentiles (p50, p95, p99)."""
        with self._lock:
            if not self.request_latencies:
                return {"p50": 0, "p95": 0, "p99": 0}

            sorted_latencies = sorted(self.request_latencies)
            count = len(sorted_latencies)

            return {
                "p50": sorted_latencies[int(count * 0.5)],
                "p95": sorted_latencies[int(count * 0.95)],
                "p99": sorted_latencies[int(count * 0.99)]
            }

    def get_error_rate(self) -> float:
        """Calculate error rate (errors / total requests)."""
        with self._lock:
            total = sum(self.request_counts.values())
            if total == 0:
                return 0.0
            return (self.request_errors / total) * 100

    def get_export_metrics(self) -> Dict:
        """Get export metrics summary."""
        with self._lock:
            return {
                "exports_sent": dict(self.exports_sent),
                "exports_failed": dict(self.exports_failed),
                "scheduled_skips": dict(self.scheduled_skips),
                "scheduler_ticks": self.scheduler_ticks,
                "scheduler_tick_errors": self.scheduler_tick_errors,
            }

    def log_metrics(self):
        """Log all metrics as structured JSON."""
        metrics = {
            "request_metrics": {
                "latency_percentiles": self.get_percentiles(),
                "error_rate": self.get_error_rate(),
                "status_codes": dict(self.request_counts)
            },
            "export_metrics": self.get_export_metrics()
        }

        logger.info("Metrics snapshot", extra={"metrics": metrics})

        return metrics


# Global singleton
_collector: MetricsCollector = None
_collector_lock = threading.Lock()


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector singleton."""
    global _collector
    if _collector is None:
        with _collector_lock:
            if _collector is None:
                _collector = MetricsCollector()
    return _collector
