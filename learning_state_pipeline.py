"""
Learning State Pipeline.

Turns one face analysis (68 landmarks + expression probabilities) into a
published learning state. Per frame:

  landmarks -> metric extractor -> smoother -> classifier (+ expressions)
            -> confidence scorer -> stability gate
            -> (published state, detection history, clarification trigger)

All mutable state (smoothed metrics, stability buffer, history, cooldown and
counters) belongs to one pipeline instance and is guarded by one lock scoped to
"process one frame". Transitions and trigger decisions are returned in the
FrameResult; the caller performs any side effect (e.g. asking the tutor for a
simplified explanation).
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional, Tuple

import config
from utils.confidence_scorer import ConfidenceScorer
from utils.landmark_metrics import extract_metrics
from utils.learning_state_classifier import ClassifierThresholds, LearningStateClassifier
from utils.learning_types import Detection, ExpressionVector, LearningState
from utils.metric_smoother import MetricSmoother
from utils.pipeline_errors import SchemaError
from utils.stability_gate import StabilityGate
from utils.state_history import DetectionHistory, dominant_recent_state
from utils.transition_trigger import ClarificationTrigger

logger = logging.getLogger(__name__)


class FrameOutcome(Enum):
    """What happened to one frame."""
    ACCEPTED = "accepted"              # passed the stability gate and was recorded in history
    LOW_CONFIDENCE = "low_confidence"  # classified but rejected by the gate
    NO_FACE = "no_face"                # nothing to analyse; failed detection
    SCHEMA_ERROR = "schema_error"      # malformed input; failed detection, state untouched


@dataclass
class PipelineSettings:
    """Tunable pipeline parameters; from_config() reads the environment-backed config module."""
    smoothing_alpha: float = 0.6
    metric_history_window: int = 5
    stability_buffer_size: int = 3
    accept_confidence_threshold: float = 0.4
    confidence_floor: float = 0.3
    stability_floor: float = 0.3
    history_capacity: int = 20
    aggregation_window_sec: float = 30.0
    clarification_cooldown_sec: float = 10.0
    boredom_strategy: str = "scoring"
    eye_closure_threshold: float = 0.35
    eye_closure_bored_sec: float = 5.0

    @classmethod
    def from_config(cls) -> "PipelineSettings":
        return cls(
            smoothing_alpha=config.SMOOTHING_ALPHA,
            metric_history_window=config.METRIC_HISTORY_WINDOW,
            stability_buffer_size=config.STABILITY_BUFFER_SIZE,
            accept_confidence_threshold=config.ACCEPT_CONFIDENCE_THRESHOLD,
            confidence_floor=config.CONFIDENCE_FLOOR,
            stability_floor=config.STABILITY_FLOOR,
            history_capacity=config.HISTORY_CAPACITY,
            aggregation_window_sec=config.AGGREGATION_WINDOW_SEC,
            clarification_cooldown_sec=config.CLARIFICATION_COOLDOWN_SEC,
            boredom_strategy=config.BOREDOM_STRATEGY,
            eye_closure_threshold=config.EYE_CLOSURE_THRESHOLD,
            eye_closure_bored_sec=config.EYE_CLOSURE_BORED_SEC,
        )


@dataclass(frozen=True)
class FrameResult:
    """Result of processing one frame."""
    outcome: FrameOutcome
    published: LearningState
    timestamp: float
    candidate: Optional[LearningState] = None
    confidence: Optional[float] = None
    transition: Optional[Tuple[LearningState, LearningState]] = None
    clarification_due: bool = False
    skip_reason: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome.value,
            "published": self.published.value,
            "timestamp": self.timestamp,
            "candidate": self.candidate.value if self.candidate else None,
            "confidence": round(self.confidence, 4) if self.confidence is not None else None,
            "transition": [s.value for s in self.transition] if self.transition else None,
            "clarificationDue": self.clarification_due,
            "skipReason": self.skip_reason,
            "error": self.error,
        }


class LearningStatePipeline:
    """
    Stateful per-session pipeline.

    Usage:
        pipeline = LearningStatePipeline(PipelineSettings.from_config())
        result = pipeline.process_frame(landmarks, expressions, consumer_busy=tutor.is_busy)
        if result.clarification_due:
            tutor.generate_simplified_explanation()
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        thresholds: Optional[ClassifierThresholds] = None,
    ):
        self.settings = settings or PipelineSettings()
        s = self.settings
        self.smoother = MetricSmoother(alpha=s.smoothing_alpha, history_window=s.metric_history_window)
        classifier_kwargs = {
            "boredom_strategy": s.boredom_strategy,
            "eye_closure_threshold": s.eye_closure_threshold,
            "eye_closure_bored_sec": s.eye_closure_bored_sec,
        }
        if thresholds is not None:
            classifier_kwargs["thresholds"] = thresholds
        self.classifier = LearningStateClassifier(**classifier_kwargs)
        self.scorer = ConfidenceScorer(floor=s.confidence_floor, stability_floor=s.stability_floor)
        self.gate = StabilityGate(
            buffer_size=s.stability_buffer_size,
            accept_threshold=s.accept_confidence_threshold,
        )
        self.history = DetectionHistory(capacity=s.history_capacity)
        self.trigger = ClarificationTrigger(cooldown_sec=s.clarification_cooldown_sec)
        self.lock = threading.Lock()
        self.total_detections = 0
        self.successful_detections = 0
        self.failed_detections = 0

    @property
    def published_state(self) -> LearningState:
        with self.lock:
            return self.gate.published

    def process_frame(
        self,
        landmarks: Any,
        expressions: Optional[Mapping[str, Any]],
        now: Optional[float] = None,
        consumer_busy: bool = False,
    ) -> FrameResult:
        """
        Process one analysed frame.

        Args:
            landmarks: 68x2 landmark geometry, or None when no face was found
            expressions: Expression label -> probability mapping, or None when no face was found
            now: Frame timestamp in seconds (defaults to time.time())
            consumer_busy: True while the tutor is generating a reply (suppresses clarification)

        Returns:
            FrameResult. SchemaError is reported in the result, never raised.
        """
        now = time.time() if now is None else float(now)
        if landmarks is None or expressions is None:
            return self.record_no_face(now)

        # Validate everything before touching any state
        try:
            expression_vector = ExpressionVector.from_mapping(expressions)
            raw_metrics = extract_metrics(landmarks)
        except SchemaError as e:
            logger.warning("Rejected malformed frame: %s", e)
            with self.lock:
                self.total_detections += 1
                self.failed_detections += 1
                return FrameResult(
                    outcome=FrameOutcome.SCHEMA_ERROR,
                    published=self.gate.published,
                    timestamp=now,
                    error=str(e),
                )

        with self.lock:
            self.total_detections += 1
            metrics = self.smoother.smooth(raw_metrics)
            candidate = self.classifier.classify(expression_vector, metrics, now)
            confidence = self.scorer.score(expression_vector, metrics, candidate, self.smoother.recent())
            gate_result = self.gate.step(candidate, confidence)

            if not gate_result.accepted:
                return FrameResult(
                    outcome=FrameOutcome.LOW_CONFIDENCE,
                    published=gate_result.published,
                    timestamp=now,
                    candidate=candidate,
                    confidence=confidence,
                )

            self.successful_detections += 1
            self.history.append(Detection(
                state=candidate,
                confidence=confidence,
                expressions=expression_vector,
                metrics=metrics,
                timestamp=now,
            ))
            decision = self.trigger.evaluate(gate_result.transition, consumer_busy, now)
            return FrameResult(
                outcome=FrameOutcome.ACCEPTED,
                published=gate_result.published,
                timestamp=now,
                candidate=candidate,
                confidence=confidence,
                transition=gate_result.transition,
                clarification_due=decision.fired,
                skip_reason=decision.skip_reason,
            )

    def record_no_face(self, now: Optional[float] = None) -> FrameResult:
        """Count a frame with no usable face; smoothing, gate and history are left alone."""
        now = time.time() if now is None else float(now)
        with self.lock:
            self.total_detections += 1
            self.failed_detections += 1
            self.classifier.reset_timers()
            return FrameResult(outcome=FrameOutcome.NO_FACE, published=self.gate.published, timestamp=now)

    def record_failure(self, error: str, now: Optional[float] = None) -> FrameResult:
        """Count a frame that failed for an unexpected reason (analyzer crash, decode error)."""
        now = time.time() if now is None else float(now)
        with self.lock:
            self.total_detections += 1
            self.failed_detections += 1
            return FrameResult(
                outcome=FrameOutcome.SCHEMA_ERROR,
                published=self.gate.published,
                timestamp=now,
                error=error,
            )

    def dominant_recent_state(self, now: Optional[float] = None) -> LearningState:
        """Dominant state over the aggregation window; the published state when the window is empty."""
        now = time.time() if now is None else float(now)
        with self.lock:
            return dominant_recent_state(
                self.history,
                now,
                window_sec=self.settings.aggregation_window_sec,
                fallback=self.gate.published,
            )

    def get_counters(self) -> dict:
        with self.lock:
            return {
                "total": self.total_detections,
                "successful": self.successful_detections,
                "failed": self.failed_detections,
            }

    def snapshot(self, now: Optional[float] = None) -> dict:
        """Read-only diagnostic view (history oldest first)."""
        now = time.time() if now is None else float(now)
        with self.lock:
            dominant = dominant_recent_state(
                self.history,
                now,
                window_sec=self.settings.aggregation_window_sec,
                fallback=self.gate.published,
            )
            return {
                "publishedState": self.gate.published.value,
                "dominantRecentState": dominant.value,
                "counters": {
                    "total": self.total_detections,
                    "successful": self.successful_detections,
                    "failed": self.failed_detections,
                },
                "history": [d.to_dict() for d in self.history.entries()],
                "smoothedMetrics": self.smoother.previous.as_dict() if self.smoother.previous else None,
                "lastClarificationAt": self.trigger.last_fired,
            }

    def reset(self) -> None:
        """Start a fresh session: clears smoothing, gate, history, cooldown and counters."""
        with self.lock:
            self.smoother.reset()
            self.classifier.reset_timers()
            self.gate.reset()
            self.history.clear()
            self.trigger.reset()
            self.total_detections = 0
            self.successful_detections = 0
            self.failed_detections = 0
