"""
Landmark Metric Extractor

Turns one frame of 68-point facial geometry (iBUG convention) into six
normalized metrics used by the learning state classifier.

Key indices (0-based):
  Jaw 0-16, right eyebrow 17-21, left eyebrow 22-26, nose 27-35,
  right eye 36-41, left eye 42-47, outer lip 48-59, inner lip 60-67.

Normalization constants are calibrated for faces roughly 150-250 px wide
(the detector input size). Image y grows downward.
"""

from typing import Any

import numpy as np

from utils.learning_types import MetricSet
from utils.pipeline_errors import SchemaError

LANDMARK_COUNT = 68

# Landmark indices used by the metrics
RIGHT_BROW_MID = (19, 20)
LEFT_BROW_MID = (23, 24)
RIGHT_EYE_TOP = (37, 38)
LEFT_EYE_TOP = (43, 44)
RIGHT_EYE_BOTTOM = 41
LEFT_EYE_BOTTOM = 47
RIGHT_BROW_INNER, LEFT_BROW_INNER = 21, 22
JAW_RIGHT, JAW_LEFT = 0, 16
MOUTH_CORNER_RIGHT, MOUTH_CORNER_LEFT = 48, 54
INNER_LIP_TOP, INNER_LIP_BOTTOM = 62, 66

# Brow raise is relative to jaw width: a resting brow sits about 10% of the
# face width above the upper eyelid (20 px on a 200 px face) and reads 0;
# a further 7.5% (15 px at that scale) reads 1.
NEUTRAL_BROW_GAP_RATIO = 0.10
BROW_RAISE_RANGE_RATIO = 0.075

# Calibration constants (pixels at detector scale)
MOUTH_TO_JAW_RATIO = 0.6
EYE_HEIGHT_SCALE = 8.0
MOUTH_HEIGHT_SCALE = 20.0
INNER_BROW_DISTANCE_SCALE = 20.0
MOUTH_CORNER_DROP_SCALE = 10.0


def _clamp01(value: float) -> float:
    return float(max(0.0, min(1.0, value)))


def validate_geometry(landmarks: Any) -> np.ndarray:
    """
    Check that landmarks follow the 68-point schema and return an (68, 2) float array.

    Accepts (68, 2) or (68, 3) array-likes; the z column is ignored.
    Raises SchemaError for anything else.
    """
    if landmarks is None:
        raise SchemaError("Landmarks are missing")
    try:
        points = np.asarray(landmarks, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise SchemaError(f"Landmarks are not numeric: {e}") from None
    if points.ndim != 2 or points.shape[0] != LANDMARK_COUNT or points.shape[1] not in (2, 3):
        raise SchemaError(
            f"Expected {LANDMARK_COUNT}x2 landmarks, got shape {tuple(points.shape)}"
        )
    points = points[:, :2]
    if not np.all(np.isfinite(points)):
        raise SchemaError("Landmarks contain non-finite coordinates")
    return points


def extract_metrics(landmarks: Any) -> MetricSet:
    """
    Compute raw (unsmoothed) metrics for one frame.

    Args:
        landmarks: 68x2 (or 68x3) landmark positions in pixels

    Returns:
        MetricSet with every value clamped to [0, 1]

    Raises:
        SchemaError: if landmarks do not follow the 68-point schema
    """
    p = validate_geometry(landmarks)
    x, y = p[:, 0], p[:, 1]

    face_width = abs(x[JAW_LEFT] - x[JAW_RIGHT])

    # 1. Eyebrow raise: brow-to-eye-top gap beyond the neutral gap, both sides
    right_gap = y[list(RIGHT_EYE_TOP)].mean() - y[list(RIGHT_BROW_MID)].mean()
    left_gap = y[list(LEFT_EYE_TOP)].mean() - y[list(LEFT_BROW_MID)].mean()
    if face_width > 0:
        excess = (right_gap + left_gap) / 2.0 - NEUTRAL_BROW_GAP_RATIO * face_width
        eyebrow_raise = _clamp01(excess / (BROW_RAISE_RANGE_RATIO * face_width))
    else:
        eyebrow_raise = 0.0

    # 2. Smile width: mouth corner distance relative to jaw width
    mouth_width = abs(x[MOUTH_CORNER_LEFT] - x[MOUTH_CORNER_RIGHT])
    if face_width > 0:
        smile_width = _clamp01(mouth_width / (face_width * MOUTH_TO_JAW_RATIO))
    else:
        smile_width = 0.0

    # 3. Eye openness: eyelid gap, averaged over both eyes
    right_eye_h = abs(y[RIGHT_EYE_TOP[0]] - y[RIGHT_EYE_BOTTOM])
    left_eye_h = abs(y[LEFT_EYE_TOP[0]] - y[LEFT_EYE_BOTTOM])
    eye_openness = _clamp01(((right_eye_h + left_eye_h) / 2.0) / EYE_HEIGHT_SCALE)

    # 4. Mouth open: inner lip gap
    mouth_open = _clamp01(abs(y[INNER_LIP_BOTTOM] - y[INNER_LIP_TOP]) / MOUTH_HEIGHT_SCALE)

    # 5. Brow furrow: closer inner brow corners = more furrowed
    inner_brow_distance = abs(x[LEFT_BROW_INNER] - x[RIGHT_BROW_INNER])
    brow_furrow = _clamp01(1.0 - inner_brow_distance / INNER_BROW_DISTANCE_SCALE)

    # 6. Mouth corners down: corners below the upper inner lip (frown); smiles clamp to 0
    corner_y = (y[MOUTH_CORNER_RIGHT] + y[MOUTH_CORNER_LEFT]) / 2.0
    mouth_corners_down = _clamp01((corner_y - y[INNER_LIP_TOP]) / MOUTH_CORNER_DROP_SCALE)

    return MetricSet(
        eyebrow_raise=eyebrow_raise,
        smile_width=smile_width,
        eye_openness=eye_openness,
        mouth_open=mouth_open,
        brow_furrow=brow_furrow,
        mouth_corners_down=mouth_corners_down,
    )
