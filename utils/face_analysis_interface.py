"""
Face Analysis Interface Module

Abstract interface for the upstream face model. An analyzer turns one video
frame into 68 facial landmarks plus expression probabilities, so the learning
state pipeline can work with different backends interchangeably.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Tuple
import numpy as np
from dataclasses import dataclass


@dataclass
class FaceAnalysis:
    """
    Standardized analysis of the most prominent face in a frame.

    A result with landmarks or expressions set to None is treated as "no face"
    by the pipeline.
    """
    landmarks: Optional[np.ndarray]  # (68, 2) pixel coordinates, iBUG order
    expressions: Optional[Dict[str, float]]  # happy/sad/angry/fearful/disgusted/surprised/neutral
    bounding_box: Optional[Tuple[int, int, int, int]] = None  # (left, top, width, height)


class FaceAnalyzerInterface(ABC):
    """
    Abstract interface for face analysis implementations.
    """

    @abstractmethod
    def analyze(self, image: np.ndarray) -> Optional[FaceAnalysis]:
        """
        Analyze one frame.

        Args:
            image: BGR image array (OpenCV format)

        Returns:
            FaceAnalysis for the first detected face, or None when no face is found

        Raises:
            ModelUnavailableError: if the underlying model is not loaded
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True if the analyzer's models are loaded and usable."""
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Short backend name (e.g. "mediapipe")."""
        pass

    def close(self) -> None:
        """
        Clean up resources. Override if needed.
        """
        pass
