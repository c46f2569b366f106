"""
Optimization Metrics — Bounded history of rule hits, confidences and latencies.

Owned by whoever creates it and passed explicitly to detectors; keeps only the
last N confidence and latency samples.
"""

from __future__ import annotations

from collections import Counter, deque
from typing import Any


class OptimizationMetrics:
    """Append-only, keep-last-N detection statistics."""

    def __init__(self, history_size: int = 1000) -> None:
        self.history_size = history_size
        self.rule_hits: Counter[str] = Counter()
        self.confidence_scores: deque[float] = deque(maxlen=history_size)
        self.detection_latency_ms: deque[float] = deque(maxlen=history_size)

    def record_hit(self, rule_id: str) -> None:
        self.rule_hits[rule_id] += 1

    def record_run(self, confidences: list[float], latency_ms: float) -> None:
        self.confidence_scores.extend(confidences)
        self.detection_latency_ms.append(latency_ms)

    def summary(self) -> dict[str, Any]:
        """Hit frequency per rule, average confidence, average latency."""
        scores = self.confidence_scores
        latency = self.detection_latency_ms
        return {
            "rule_hit_frequency": dict(self.rule_hits),
            "average_confidence": sum(scores) / len(scores) if scores else 0.0,
            "average_detection_time_ms": sum(latency) / len(latency) if latency else 0.0,
            "samples": len(scores),
        }
