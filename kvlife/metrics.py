"""
In-process counters for the request cache gate and the background loops.

Tracks:
- Request cache hits, misses and bypasses (uncacheable requests)
- Per-loop iterations, units of work and errors
"""

import threading
from collections import defaultdict
from datetime import datetime
from typing import Dict


class MetricsCollector:
    """
    In-memory metrics collector for observability.

    Counters are updated from the loop threads and from request threads,
    so every update takes the collector lock.
    """

    def __init__(self):
        self._lock = threading.Lock()

        # Request cache
        self.cache_hits = 0
        self.cache_misses = 0
        self.cache_bypasses = 0

        # Loop counters, keyed by loop name
        self.iterations: Dict[str, int] = defaultdict(int)
        self.work_done: Dict[str, int] = defaultdict(int)
        self.error_counts: Dict[str, int] = defaultdict(int)

        self.start_time = datetime.utcnow()
        self.last_reset = datetime.utcnow()

    def record_cache_hit(self):
        with self._lock:
            self.cache_hits += 1

    def record_cache_miss(self):
        with self._lock:
            self.cache_misses += 1

    def record_cache_bypass(self):
        """Record a request served without consulting the cache."""
        with self._lock:
            self.cache_bypasses += 1

    def record_iteration(self, loop: str, work: int = 0):
        """Record one loop iteration and how many units of work it did."""
        with self._lock:
            self.iterations[loop] += 1
            self.work_done[loop] += work

    def record_error(self, loop: str):
        with self._lock:
            self.error_counts[loop] += 1

    def get_cache_hit_rate(self) -> float:
        """Get the cache hit rate as a percentage."""
        total = self.cache_hits + self.cache_misses
        if total == 0:
            return 0.0
        return (self.cache_hits / total) * 100.0

    def get_summary(self) -> Dict:
        """
        Get a summary of all metrics.

        Returns:
            Dict with request cache and per-loop counters
        """
        uptime_seconds = (datetime.utcnow() - self.start_time).total_seconds()

        with self._lock:
            summary = {
                "uptime_seconds": uptime_seconds,
                "cache": {
                    "hit_rate_pct": round(self.get_cache_hit_rate(), 2),
                    "total_hits": self.cache_hits,
                    "total_misses": self.cache_misses,
                    "total_bypasses": self.cache_bypasses,
                },
                "loops": {},
            }
            for loop in sorted(set(self.iterations) | set(self.error_counts)):
                summary["loops"][loop] = {
                    "iterations": self.iterations[loop],
                    "work_done": self.work_done[loop],
                    "errors": self.error_counts[loop],
                }
        return summary

    def reset(self):
        """Reset all metrics (useful for testing)."""
        with self._lock:
            self.cache_hits = 0
            self.cache_misses = 0
            self.cache_bypasses = 0
            self.iterations.clear()
            self.work_done.clear()
            self.error_counts.clear()
            self.last_reset = datetime.utcnow()


# Global metrics collector instance
metrics_collector = MetricsCollector()
