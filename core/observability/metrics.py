"""
Metrics Collection for Card Transaction Posting

Collects and exposes metrics for:
- Posting batches (started, completed)
- Per-transaction outcomes (posted, failed, ineligible)
- Posting times (average, p95)

Metrics are held in memory for the lifetime of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class BatchMetrics:
    """Metrics for posting batches."""
    started: int = 0
    completed: int = 0
    in_progress: int = 0


@dataclass
class OutcomeMetrics:
    """Per-transaction posting outcomes."""
    posted: int = 0
    failed: int = 0
    ineligible: int = 0

    # Failure reasons bucketed by error class name
    failures_by_reason: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector for card posting.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_batch_started(batch_size=4)
        metrics.record_post_succeeded(duration_ms=120)
    """

    _instance: Optional["MetricsCollector"] = None
    _lock = Lock()

    def __init__(self):
        self.batches = BatchMetrics()
        self.outcomes = OutcomeMetrics()
        self.timings = TimingMetrics()
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the singleton so the next caller starts from zero."""
        with cls._lock:
            cls._instance = None

    # =========================================================================
    # Batch Metrics
    # =========================================================================

    def record_batch_started(self, batch_size: int = 0):
        """Record a posting batch start."""
        with self._lock:
            self.batches.started += 1
            self.batches.in_progress += 1

    def record_batch_completed(self, duration_ms: float = None):
        """Record a posting batch completion."""
        with self._lock:
            self.batches.completed += 1
            self.batches.in_progress = max(0, self.batches.in_progress - 1)
            if duration_ms:
                self.timings.add_sample(duration_ms, "batch")

    # =========================================================================
    # Outcome Metrics
    # =========================================================================

    def record_post_succeeded(self, duration_ms: float = None):
        with self._lock:
            self.outcomes.posted += 1
            if duration_ms:
                self.timings.add_sample(duration_ms, "post")

    def record_post_failed(self, reason: str = "unknown"):
        with self._lock:
            self.outcomes.failed += 1
            self.outcomes.failures_by_reason[reason] += 1

    def record_post_ineligible(self):
        with self._lock:
            self.outcomes.ineligible += 1

    # =========================================================================
    # Summary
    # =========================================================================

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for a stage."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "batches": {
                    "started": self.batches.started,
                    "completed": self.batches.completed,
                    "in_progress": self.batches.in_progress,
                },
                "outcomes": {
                    "posted": self.outcomes.posted,
                    "failed": self.outcomes.failed,
                    "ineligible": self.outcomes.ineligible,
                    "failures_by_reason": dict(self.outcomes.failures_by_reason),
                },
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()
