"""
MediaPipe Face Analyzer

FaceAnalyzerInterface implementation built on MediaPipe Face Mesh for landmarks
and the fer expression recognizer for expression probabilities.
Uses two strategies for robust landmark detection:
1. Primary: FaceMesh in tracking mode (fast, continuous)
2. Fallback: FaceMesh in static mode (more reliable for new faces)
"""

import logging
from typing import Optional

import cv2
import numpy as np

from utils.emotion_recognizer import EmotionRecognizer
from utils.face_analysis_interface import FaceAnalyzerInterface, FaceAnalysis
from utils.mediapipe_landmark_mapper import mediapipe_to_68
from utils.pipeline_errors import ModelUnavailableError

logger = logging.getLogger(__name__)


class MediaPipeFaceAnalyzer(FaceAnalyzerInterface):
    """
    MediaPipe Face Mesh (468 points, reduced to 68) plus fer expressions.
    """

    def __init__(
        self,
        min_detection_confidence: float = 0.3,
        min_tracking_confidence: float = 0.3,
        emotion_recognizer: Optional[EmotionRecognizer] = None,
    ):
        """
        Args:
            min_detection_confidence: Minimum confidence for face detection (0-1). Lower = more permissive.
            min_tracking_confidence: Minimum confidence for face tracking (0-1)
            emotion_recognizer: Expression model; defaults to an enabled EmotionRecognizer
        """
        self._det_conf = max(0.01, min(0.99, float(min_detection_confidence)))
        self._track_conf = max(0.01, min(0.99, float(min_tracking_confidence)))
        self.emotion_recognizer = emotion_recognizer or EmotionRecognizer()

        try:
            import mediapipe as mp
        except ImportError as e:
            raise ModelUnavailableError(f"MediaPipe is not installed: {e}") from e
        self.mp_face_mesh = mp.solutions.face_mesh

        # Primary: tracking mode for continuous video (fast)
        self.face_mesh = self._new_face_mesh(static=False)
        # Fallback: created on first use to reduce memory and startup cost
        self._face_mesh_static = None

    def _new_face_mesh(self, static: bool):
        conf = 0.05 if static else self._det_conf
        return self.mp_face_mesh.FaceMesh(
            static_image_mode=static,
            max_num_faces=1,
            refine_landmarks=False,
            min_detection_confidence=conf,
            min_tracking_confidence=conf if static else self._track_conf,
        )

    def _get_face_mesh_static(self):
        """Lazy init: create static FaceMesh only when tracking fails."""
        if self._face_mesh_static is None:
            self._face_mesh_static = self._new_face_mesh(static=True)
        return self._face_mesh_static

    def analyze(self, image: np.ndarray) -> Optional[FaceAnalysis]:
        if image is None or image.size == 0:
            return None
        if self.face_mesh is None:
            raise ModelUnavailableError("MediaPipe face mesh is closed")

        rgb_image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
        height, width = image.shape[:2]

        results = self.face_mesh.process(rgb_image)
        if not results.multi_face_landmarks:
            results = self._get_face_mesh_static().process(rgb_image)
        if not results.multi_face_landmarks:
            return None

        face_landmarks = results.multi_face_landmarks[0]
        mesh = np.array(
            [[lm.x * width, lm.y * height] for lm in face_landmarks.landmark],
            dtype=np.float64,
        )
        landmarks = mediapipe_to_68(mesh)

        left = int(np.min(mesh[:, 0]))
        top = int(np.min(mesh[:, 1]))
        right = int(np.max(mesh[:, 0]))
        bottom = int(np.max(mesh[:, 1]))
        bbox = (left, top, right - left, bottom - top)

        expressions = self.emotion_recognizer.analyze(image, bbox)
        return FaceAnalysis(landmarks=landmarks, expressions=expressions, bounding_box=bbox)

    def is_available(self) -> bool:
        return self.face_mesh is not None and self.emotion_recognizer.is_available()

    def get_name(self) -> str:
        return "mediapipe"

    def close(self) -> None:
        """Clean up MediaPipe resources."""
        for mesh in (self.face_mesh, self._face_mesh_static):
            if mesh is not None:
                try:
                    mesh.close()
                except Exception as e:
                    logger.debug("Error closing face mesh: %s", e)
        self.face_mesh = None
        self._face_mesh_static = None
