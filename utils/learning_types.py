"""
Core data types for learning state detection.

LearningState is the published label; ExpressionVector and MetricSet are the
two per-frame signal records; Detection is one accepted, time-stamped
classification stored in history.
"""

import math
from dataclasses import dataclass, asdict, fields
from enum import Enum
from typing import Dict, Mapping, Any

from utils.pipeline_errors import SchemaError


class LearningState(Enum):
    """Discrete learning states, in classifier priority order after the default."""
    FOCUSED = "focused"
    CONFUSED = "confused"
    BORED = "bored"
    TIRED = "tired"

    @classmethod
    def from_label(cls, label: str) -> "LearningState":
        """Parse a lowercase label such as "confused"."""
        try:
            return cls((label or "").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown learning state: {label!r}") from None


EMOTION_LABELS = ("happy", "sad", "angry", "fearful", "disgusted", "surprised", "neutral")

# Attribute name -> wire name (camelCase, as shown in the diagnostic panel).
METRIC_NAMES = {
    "eyebrow_raise": "eyebrowRaise",
    "smile_width": "smileWidth",
    "eye_openness": "eyeOpenness",
    "mouth_open": "mouthOpen",
    "brow_furrow": "browFurrow",
    "mouth_corners_down": "mouthCornersDown",
}


def _probability(label: str, value: Any) -> float:
    if isinstance(value, bool):
        raise SchemaError(f"Expression '{label}' must be a number, got bool")
    try:
        v = float(value)
    except (TypeError, ValueError):
        raise SchemaError(f"Expression '{label}' must be a number, got {value!r}") from None
    if not math.isfinite(v) or v < 0.0 or v > 1.0:
        raise SchemaError(f"Expression '{label}' must be in [0, 1], got {v}")
    return v


@dataclass(frozen=True)
class ExpressionVector:
    """Per-frame expression probabilities from the face model (need not sum to 1)."""
    happy: float = 0.0
    sad: float = 0.0
    angry: float = 0.0
    fearful: float = 0.0
    disgusted: float = 0.0
    surprised: float = 0.0
    neutral: float = 0.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ExpressionVector":
        """
        Build from a label -> probability mapping.

        Missing labels default to 0.0. Unknown labels, non-numeric values and
        values outside [0, 1] raise SchemaError.
        """
        if not isinstance(values, Mapping):
            raise SchemaError(f"Expressions must be a mapping, got {type(values).__name__}")
        unknown = sorted(set(values) - set(EMOTION_LABELS), key=str)
        if unknown:
            raise SchemaError(f"Unknown expression labels: {', '.join(map(str, unknown))}")
        return cls(**{label: _probability(label, v) for label, v in values.items()})

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def values(self):
        return [getattr(self, label) for label in EMOTION_LABELS]

    def dominant(self) -> str:
        """Label with the highest probability (first label wins ties)."""
        return max(EMOTION_LABELS, key=lambda label: getattr(self, label))


@dataclass(frozen=True)
class MetricSet:
    """Normalized (0-1) facial metrics derived from landmarks."""
    eyebrow_raise: float = 0.0
    smile_width: float = 0.0
    eye_openness: float = 0.0
    mouth_open: float = 0.0
    brow_furrow: float = 0.0
    mouth_corners_down: float = 0.0

    @classmethod
    def from_dict(cls, values: Mapping[str, float]) -> "MetricSet":
        """Build from attribute names or camelCase wire names; missing metrics are 0.0."""
        wire_to_attr = {wire: attr for attr, wire in METRIC_NAMES.items()}
        kwargs = {}
        for key, v in values.items():
            attr = wire_to_attr.get(key, key)
            if attr not in METRIC_NAMES:
                raise SchemaError(f"Unknown metric: {key}")
            kwargs[attr] = float(v)
        return cls(**kwargs)

    def as_dict(self) -> Dict[str, float]:
        """camelCase dictionary, as shown in the diagnostic panel."""
        return {METRIC_NAMES[f.name]: getattr(self, f.name) for f in fields(self)}

    def values(self):
        return [getattr(self, f.name) for f in fields(self)]


@dataclass(frozen=True)
class Detection:
    """One accepted classification; immutable once appended to history."""
    state: LearningState
    confidence: float
    expressions: ExpressionVector
    metrics: MetricSet
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "confidence": round(self.confidence, 4),
            "expressions": self.expressions.as_dict(),
            "metrics": self.metrics.as_dict(),
            "timestamp": self.timestamp,
        }
