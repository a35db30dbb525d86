"""
Expression probabilities from a face crop using the `fer` library.

fer labels are mapped onto the seven labels the classifier uses
(surprise -> surprised, fear -> fearful, disgust -> disgusted). The model is
imported and loaded on first use so startup stays fast and machines without
TensorFlow can still run with EXPRESSION_MODEL_ENABLED=false.
"""

import logging
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from utils.pipeline_errors import ModelUnavailableError

logger = logging.getLogger(__name__)

FER_LABEL_MAP = {
    "angry": "angry",
    "disgust": "disgusted",
    "fear": "fearful",
    "happy": "happy",
    "sad": "sad",
    "surprise": "surprised",
    "neutral": "neutral",
}

NEUTRAL_EXPRESSIONS = {
    "happy": 0.0,
    "sad": 0.0,
    "angry": 0.0,
    "fearful": 0.0,
    "disgusted": 0.0,
    "surprised": 0.0,
    "neutral": 1.0,
}


def map_fer_scores(scores: Dict[str, float]) -> Dict[str, float]:
    """Map a fer emotion dict onto our labels; labels fer did not report are 0.0."""
    mapped = {label: 0.0 for label in NEUTRAL_EXPRESSIONS}
    for src, dest in FER_LABEL_MAP.items():
        if src in scores:
            mapped[dest] = max(0.0, min(1.0, float(scores[src])))
    return mapped


class EmotionRecognizer:
    """
    Lightweight expression recognizer. Expects full BGR frames plus a face box.

    When disabled, every face reports a neutral expression vector.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = bool(enabled)
        self._detector = None
        self._load_error: Optional[str] = None

    def _get_detector(self):
        if self._detector is None:
            if self._load_error is not None:
                raise ModelUnavailableError(f"Expression model unavailable: {self._load_error}")
            try:
                from fer import FER
                # mtcnn=False because the face box comes from MediaPipe
                self._detector = FER(mtcnn=False)
                logger.info("Expression model loaded (fer)")
            except Exception as e:
                self._load_error = str(e)
                raise ModelUnavailableError(f"Expression model unavailable: {e}") from e
        return self._detector

    def is_available(self) -> bool:
        if not self.enabled:
            return True
        try:
            self._get_detector()
            return True
        except ModelUnavailableError:
            return False

    def analyze(self, frame_bgr: np.ndarray, bbox: Tuple[int, int, int, int]) -> Dict[str, float]:
        """
        Args:
            frame_bgr: Full frame in BGR format
            bbox: (left, top, width, height) of the face

        Returns:
            Label -> probability for all seven labels (neutral when the model finds nothing)
        """
        if not self.enabled:
            return dict(NEUTRAL_EXPRESSIONS)
        detector = self._get_detector()

        x, y, w, h = bbox
        h_img, w_img = frame_bgr.shape[:2]
        x = max(0, int(x))
        y = max(0, int(y))
        w = max(1, min(int(w), w_img - x))
        h = max(1, min(int(h), h_img - y))

        # fer expects RGB
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        emotions = detector.detect_emotions(frame_rgb, face_rectangles=[(x, y, w, h)])
        if not emotions:
            return dict(NEUTRAL_EXPRESSIONS)
        return map_fer_scores(emotions[0]["emotions"])
