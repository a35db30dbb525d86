"""
Temporal smoothing for landmark metrics.

Per-metric exponential moving average: smoothed = alpha * current + (1 - alpha) * previous.
The first frame seeds the average (no smoothing applied). A short window of
recent smoothed sets is kept for the confidence scorer's stability term.
"""

from collections import deque
from dataclasses import fields
from typing import List, Optional

from utils.learning_types import MetricSet


class MetricSmoother:
    """
    Streaming EMA over MetricSet values.

    Usage:
        smoother = MetricSmoother(alpha=0.6)
        smoothed = smoother.smooth(raw_metrics)
    """

    def __init__(self, alpha: float = 0.6, history_window: int = 5):
        """
        Args:
            alpha: Smoothing factor in (0, 1); higher = more responsive, lower = smoother
            history_window: Number of recent smoothed sets kept for stability scoring
        """
        if not 0.0 < float(alpha) < 1.0:
            raise ValueError(f"alpha must be in (0, 1), got {alpha}")
        if int(history_window) < 1:
            raise ValueError("history_window must be >= 1")
        self.alpha = float(alpha)
        self._previous: Optional[MetricSet] = None
        self._recent: deque = deque(maxlen=int(history_window))

    @property
    def previous(self) -> Optional[MetricSet]:
        """Last smoothed metric set (None before the first frame)."""
        return self._previous

    def smooth(self, current: MetricSet) -> MetricSet:
        """Blend the current raw metrics into the running average and return the new smoothed set."""
        previous = self._previous if self._previous is not None else current
        a = self.alpha
        smoothed = MetricSet(**{
            f.name: a * getattr(current, f.name) + (1.0 - a) * getattr(previous, f.name)
            for f in fields(MetricSet)
        })
        self._previous = smoothed
        self._recent.append(smoothed)
        return smoothed

    def recent(self) -> List[MetricSet]:
        """Recent smoothed sets, oldest first."""
        return list(self._recent)

    def reset(self) -> None:
        self._previous = None
        self._recent.clear()
