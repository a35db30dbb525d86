"""
Learning State Classifier

Fuses smoothed landmark metrics with the expression vector into one of four
learning states. Each state has a weighted score compared against a threshold,
plus OR'd fallback rules on single metrics or expressions.

Evaluation order is the priority order:
  1. confused  (raised brows, open mouth, furrowed brow, surprise/fear)
  2. tired     (droopy eyes, no smile, blank or sad expression)
  3. bored     (frown, sadness, no smile, flat or disgusted expression)
  4. focused   (default when nothing else fires)

An alternate boredom strategy ("eye_closure") replaces the instantaneous bored
score with a sustained eye-closure timer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from utils.learning_types import ExpressionVector, LearningState, MetricSet

logger = logging.getLogger(__name__)

BOREDOM_STRATEGIES = ("scoring", "eye_closure")


@dataclass(frozen=True)
class ClassifierThresholds:
    """Tunable thresholds; defaults are the calibrated production values."""
    confusion_score: float = 0.15
    confusion_eyebrow_raise: float = 0.3
    confusion_surprised: float = 0.2
    tired_score: float = 0.20
    tired_eye_openness: float = 0.55
    tired_neutral: float = 0.6
    tired_neutral_eye_openness: float = 0.65
    bored_score: float = 0.12
    bored_mouth_corners_down: float = 0.25
    bored_sad: float = 0.10
    bored_neutral: float = 0.55
    bored_neutral_smile_width: float = 0.35
    bored_frown_corners: float = 0.15
    bored_frown_neutral: float = 0.4


DEFAULT_THRESHOLDS = ClassifierThresholds()


def confusion_score(e: ExpressionVector, m: MetricSet) -> float:
    return (
        m.eyebrow_raise * 0.4
        + m.mouth_open * 0.2
        + m.brow_furrow * 0.2
        + e.surprised * 0.15
        + e.fearful * 0.05
    )


def tired_score(e: ExpressionVector, m: MetricSet) -> float:
    return (
        (1 - m.eye_openness) * 0.45  # droopy eyes (strongest)
        + (1 - m.smile_width) * 0.15
        + e.neutral * 0.15
        + e.sad * 0.15
        + (1 - m.eyebrow_raise) * 0.1
    )


def bored_score(e: ExpressionVector, m: MetricSet) -> float:
    return (
        m.mouth_corners_down * 0.30
        + e.sad * 0.25
        + (1 - m.smile_width) * 0.20
        + e.neutral * 0.15
        + e.disgusted * 0.10
    )


def is_confused(e: ExpressionVector, m: MetricSet, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> bool:
    return (
        confusion_score(e, m) > t.confusion_score
        or m.eyebrow_raise > t.confusion_eyebrow_raise
        or e.surprised > t.confusion_surprised
    )


def is_tired(e: ExpressionVector, m: MetricSet, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> bool:
    return (
        tired_score(e, m) > t.tired_score
        or m.eye_openness < t.tired_eye_openness
        or (e.neutral > t.tired_neutral and m.eye_openness < t.tired_neutral_eye_openness)
    )


def is_bored(e: ExpressionVector, m: MetricSet, t: ClassifierThresholds = DEFAULT_THRESHOLDS) -> bool:
    return (
        bored_score(e, m) > t.bored_score
        or m.mouth_corners_down > t.bored_mouth_corners_down
        or e.sad > t.bored_sad
        or (e.neutral > t.bored_neutral and m.smile_width < t.bored_neutral_smile_width)
        or (m.mouth_corners_down > t.bored_frown_corners and e.neutral > t.bored_frown_neutral)
    )


def classify_learning_state(
    expressions: ExpressionVector,
    metrics: MetricSet,
    thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
) -> LearningState:
    """
    Score-based classification (stateless, deterministic).

    Args:
        expressions: Expression probabilities for the frame
        metrics: Smoothed landmark metrics
        thresholds: Score and fallback thresholds

    Returns:
        The first state whose rule fires, in priority order; FOCUSED otherwise
    """
    if is_confused(expressions, metrics, thresholds):
        return LearningState.CONFUSED
    if is_tired(expressions, metrics, thresholds):
        return LearningState.TIRED
    if is_bored(expressions, metrics, thresholds):
        return LearningState.BORED
    return LearningState.FOCUSED


class EyeClosureTimer:
    """Tracks how long the eyes have stayed below a closure threshold."""

    def __init__(self, closure_threshold: float = 0.35, bored_after_sec: float = 5.0):
        self.closure_threshold = float(closure_threshold)
        self.bored_after_sec = float(bored_after_sec)
        self._closed_since: Optional[float] = None

    def update(self, eye_openness: float, now: float) -> float:
        """Record one frame; returns seconds the eyes have been closed (0 when open)."""
        if eye_openness < self.closure_threshold:
            if self._closed_since is None:
                self._closed_since = now
            return max(0.0, now - self._closed_since)
        self._closed_since = None
        return 0.0

    def is_sustained(self, closed_for: float) -> bool:
        return closed_for >= self.bored_after_sec

    def reset(self) -> None:
        self._closed_since = None


class LearningStateClassifier:
    """
    Classifier with a configurable boredom strategy.

    "scoring" is the pure score-based rule set (classify_learning_state).
    "eye_closure" checks a sustained eye-closure timer right after confusion,
    and skips the instantaneous bored score; otherwise a long closure would
    always be absorbed by the fatigue rule.
    """

    def __init__(
        self,
        thresholds: ClassifierThresholds = DEFAULT_THRESHOLDS,
        boredom_strategy: str = "scoring",
        eye_closure_threshold: float = 0.35,
        eye_closure_bored_sec: float = 5.0,
    ):
        strategy = (boredom_strategy or "scoring").lower()
        if strategy not in BOREDOM_STRATEGIES:
            raise ValueError(f"boredom_strategy must be one of {BOREDOM_STRATEGIES}, got {boredom_strategy!r}")
        self.thresholds = thresholds
        self.boredom_strategy = strategy
        self.eye_closure = EyeClosureTimer(eye_closure_threshold, eye_closure_bored_sec)

    def classify(self, expressions: ExpressionVector, metrics: MetricSet, now: float) -> LearningState:
        if self.boredom_strategy == "scoring":
            return classify_learning_state(expressions, metrics, self.thresholds)

        closed_for = self.eye_closure.update(metrics.eye_openness, now)
        if is_confused(expressions, metrics, self.thresholds):
            return LearningState.CONFUSED
        if self.eye_closure.is_sustained(closed_for):
            logger.debug("Eyes closed for %.1fs, classifying as bored", closed_for)
            return LearningState.BORED
        if is_tired(expressions, metrics, self.thresholds):
            return LearningState.TIRED
        return LearningState.FOCUSED

    def reset_timers(self) -> None:
        """Called on no-face frames and session reset."""
        self.eye_closure.reset()
