"""
Cooldown-gated trigger for automatic clarifications.

Fires when the published state goes from focused to confused, the tutor is not
busy answering, and the cooldown since the last firing has elapsed. Skips are
logged, never raised.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from utils.learning_types import LearningState

logger = logging.getLogger(__name__)

SKIP_NO_TRANSITION = "no_transition"
SKIP_NOT_MATCHING = "transition_not_matching"
SKIP_CONSUMER_BUSY = "consumer_busy"
SKIP_COOLDOWN = "cooldown_active"


@dataclass(frozen=True)
class TriggerDecision:
    fired: bool
    skip_reason: Optional[str] = None
    remaining_sec: float = 0.0


class ClarificationTrigger:
    """Watches published transitions for focused -> confused."""

    def __init__(
        self,
        cooldown_sec: float = 10.0,
        from_state: LearningState = LearningState.FOCUSED,
        to_state: LearningState = LearningState.CONFUSED,
    ):
        if cooldown_sec < 0:
            raise ValueError("cooldown_sec must be >= 0")
        self.cooldown_sec = float(cooldown_sec)
        self.from_state = from_state
        self.to_state = to_state
        self.last_fired: Optional[float] = None

    def evaluate(
        self,
        transition: Optional[Tuple[LearningState, LearningState]],
        consumer_busy: bool,
        now: float,
    ) -> TriggerDecision:
        """
        Decide whether to fire for this frame's transition (None when the state did not change).
        Updates last_fired when it fires.
        """
        if transition is None:
            return TriggerDecision(fired=False, skip_reason=SKIP_NO_TRANSITION)

        previous, new = transition
        if previous != self.from_state or new != self.to_state:
            logger.debug("Transition %s -> %s does not trigger clarification", previous.value, new.value)
            return TriggerDecision(fired=False, skip_reason=SKIP_NOT_MATCHING)

        if consumer_busy:
            logger.info("Tutor is busy, skipping auto-clarification")
            return TriggerDecision(fired=False, skip_reason=SKIP_CONSUMER_BUSY)

        if self.last_fired is not None:
            elapsed = now - self.last_fired
            if elapsed < self.cooldown_sec:
                remaining = self.cooldown_sec - elapsed
                logger.info("Cooldown active, %.0fs remaining before next auto-clarification", remaining)
                return TriggerDecision(fired=False, skip_reason=SKIP_COOLDOWN, remaining_sec=remaining)

        self.last_fired = now
        logger.info("Student looks confused, requesting a simplified explanation")
        return TriggerDecision(fired=True)

    def reset(self) -> None:
        self.last_fired = None
