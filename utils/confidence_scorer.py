"""
Confidence scoring for a classified learning state.

confidence = w_expr * expression clarity
           + w_geo  * geometric clarity for the chosen state
           + w_temp * temporal stability of recent smoothed metrics

The result is clamped to [floor, 1.0] so a detected face never reports zero confidence.
"""

from typing import Sequence

import numpy as np

from utils.learning_types import ExpressionVector, LearningState, MetricSet

# Minimum number of recent metric sets needed to measure stability
MIN_STABILITY_FRAMES = 3
# Stability assumed when there is not enough history yet
DEFAULT_STABILITY = 0.5


def expression_clarity(expressions: ExpressionVector) -> float:
    """How clearly one expression stands out: 2 * (max - mean), capped at 1."""
    values = np.asarray(expressions.values(), dtype=np.float64)
    return float(min((values.max() - values.mean()) * 2.0, 1.0))


def geometric_clarity(metrics: MetricSet, state: LearningState) -> float:
    """How pronounced the facial movements behind the chosen state are."""
    if state is LearningState.CONFUSED:
        return (metrics.eyebrow_raise + metrics.brow_furrow) / 2.0
    if state is LearningState.TIRED:
        return 1.0 - metrics.eye_openness
    if state is LearningState.BORED:
        return ((1.0 - metrics.smile_width) + (1.0 - metrics.eye_openness)) / 2.0
    return (metrics.eye_openness + metrics.smile_width) / 2.0


def metric_variance(recent: Sequence[MetricSet]) -> float:
    """Mean per-metric population variance across the given sets (1.0 when empty)."""
    if not recent:
        return 1.0
    matrix = np.asarray([m.values() for m in recent], dtype=np.float64)
    return float(matrix.var(axis=0).mean())


class ConfidenceScorer:
    """Weighted fusion of expression, geometric and temporal evidence."""

    def __init__(
        self,
        floor: float = 0.3,
        stability_floor: float = 0.3,
        expression_weight: float = 0.3,
        geometric_weight: float = 0.5,
        temporal_weight: float = 0.2,
    ):
        total = expression_weight + geometric_weight + temporal_weight
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Confidence weights must sum to 1.0, got {total:.4f}")
        if not 0.0 <= floor <= 1.0:
            raise ValueError(f"floor must be in [0, 1], got {floor}")
        self.floor = float(floor)
        self.stability_floor = float(stability_floor)
        self.expression_weight = float(expression_weight)
        self.geometric_weight = float(geometric_weight)
        self.temporal_weight = float(temporal_weight)

    def temporal_stability(self, recent: Sequence[MetricSet]) -> float:
        if len(recent) < MIN_STABILITY_FRAMES:
            return DEFAULT_STABILITY
        window = list(recent)[-MIN_STABILITY_FRAMES:]
        return max(self.stability_floor, 1.0 - metric_variance(window))

    def score(
        self,
        expressions: ExpressionVector,
        metrics: MetricSet,
        state: LearningState,
        recent: Sequence[MetricSet] = (),
    ) -> float:
        """
        Args:
            expressions: Expression probabilities for the frame
            metrics: Smoothed metrics for the frame
            state: Candidate state from the classifier
            recent: Recent smoothed metric sets, oldest first (current frame included)

        Returns:
            Confidence in [floor, 1.0]
        """
        confidence = (
            expression_clarity(expressions) * self.expression_weight
            + geometric_clarity(metrics, state) * self.geometric_weight
            + self.temporal_stability(recent) * self.temporal_weight
        )
        return float(max(self.floor, min(confidence, 1.0)))
