"""
Stability gate for published learning states.

A frame is accepted when its confidence is above the threshold, or when it
repeats the last accepted state (hysteresis). The published state changes only
once the last M accepted candidates agree on a different state. Transitions are
returned to the caller rather than pushed through callbacks.
"""

import logging
from collections import deque
from dataclasses import dataclass
from typing import List, Optional, Tuple

from utils.learning_types import LearningState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateResult:
    """Outcome of one gate step."""
    accepted: bool
    published: LearningState
    transition: Optional[Tuple[LearningState, LearningState]] = None

    @property
    def transitioned(self) -> bool:
        return self.transition is not None


class StabilityGate:
    """Requires M consecutive accepted agreeing candidates before publishing a new state."""

    def __init__(
        self,
        buffer_size: int = 3,
        accept_threshold: float = 0.4,
        initial_state: LearningState = LearningState.FOCUSED,
    ):
        if int(buffer_size) < 1:
            raise ValueError("buffer_size must be >= 1")
        self.buffer_size = int(buffer_size)
        self.accept_threshold = float(accept_threshold)
        self._initial_state = initial_state
        self._buffer: deque = deque(maxlen=self.buffer_size)
        self._published = initial_state
        self._last_accepted: Optional[LearningState] = None

    @property
    def published(self) -> LearningState:
        return self._published

    @property
    def last_accepted(self) -> Optional[LearningState]:
        return self._last_accepted

    def buffer(self) -> List[LearningState]:
        return list(self._buffer)

    def step(self, candidate: LearningState, confidence: float) -> GateResult:
        """
        Feed one classifier output.

        Args:
            candidate: Classifier output for this frame
            confidence: Confidence for the candidate

        Returns:
            GateResult with acceptance, the (possibly new) published state and any transition
        """
        if not (confidence > self.accept_threshold or candidate == self._last_accepted):
            logger.debug(
                "Low confidence %.2f for %s, keeping %s",
                confidence, candidate.value, self._published.value,
            )
            return GateResult(accepted=False, published=self._published)

        self._last_accepted = candidate
        self._buffer.append(candidate)

        transition = None
        if (
            len(self._buffer) == self.buffer_size
            and all(s == candidate for s in self._buffer)
            and candidate != self._published
        ):
            transition = (self._published, candidate)
            logger.info("Learning state transition: %s -> %s", self._published.value, candidate.value)
            self._published = candidate

        return GateResult(accepted=True, published=self._published, transition=transition)

    def reset(self) -> None:
        self._buffer.clear()
        self._published = self._initial_state
        self._last_accepted = None
