"""
Bounded detection history and dominant-recent-state aggregation.

The dominant state is what the tutor chat receives with each user message:
entries inside the trailing window are scored by 0.7 * confidence + 0.3 * recency
rank (later entries rank higher) and summed per state.
"""

from collections import deque
from typing import Dict, List, Optional

from utils.learning_types import Detection, LearningState

CONFIDENCE_WEIGHT = 0.7
RECENCY_WEIGHT = 0.3


class DetectionHistory:
    """Ring buffer of the most recent accepted detections (oldest evicted first)."""

    def __init__(self, capacity: int = 20):
        if int(capacity) < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = int(capacity)
        self._entries: deque = deque(maxlen=self.capacity)

    def append(self, detection: Detection) -> None:
        self._entries.append(detection)

    def entries(self) -> List[Detection]:
        """Copy of the history, oldest first."""
        return list(self._entries)

    def within(self, window_sec: float, now: float) -> List[Detection]:
        """Entries whose timestamp falls inside the trailing window, oldest first."""
        return [d for d in self._entries if now - d.timestamp < window_sec]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def state_scores(recent: List[Detection]) -> Dict[LearningState, float]:
    """Summed confidence+recency score per state, in order of first appearance."""
    scores: Dict[LearningState, float] = {}
    n = len(recent)
    for index, detection in enumerate(recent):
        recency = (index + 1) / n
        score = detection.confidence * CONFIDENCE_WEIGHT + recency * RECENCY_WEIGHT
        scores[detection.state] = scores.get(detection.state, 0.0) + score
    return scores


def dominant_recent_state(
    history: DetectionHistory,
    now: float,
    window_sec: float = 30.0,
    fallback: Optional[LearningState] = LearningState.FOCUSED,
) -> Optional[LearningState]:
    """
    Most significant state over the trailing window.

    Args:
        history: Detection history
        now: Current time (seconds, same clock as detection timestamps)
        window_sec: Trailing window length
        fallback: Returned when no entry falls inside the window (the published state)

    Returns:
        The highest-scoring state; on ties, the state that appeared first in the window
    """
    recent = history.within(window_sec, now)
    if not recent:
        return fallback
    best_state, best_score = None, float("-inf")
    for state, score in state_scores(recent).items():
        if score > best_score:
            best_state, best_score = state, score
    return best_state
