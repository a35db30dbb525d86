"""
Utilities package for the Learning State Tutor.

Landmark metrics, smoothing, classification, confidence scoring, the stability
gate, detection history and the clarification trigger, plus the face analysis
backends and video source handling that feed them.
"""

from .pipeline_errors import LearningStateError, SchemaError, ModelUnavailableError
from .learning_types import LearningState, ExpressionVector, MetricSet, Detection
from .landmark_metrics import extract_metrics
from .metric_smoother import MetricSmoother
from .learning_state_classifier import ClassifierThresholds, LearningStateClassifier, classify_learning_state
from .confidence_scorer import ConfidenceScorer
from .stability_gate import StabilityGate, GateResult
from .state_history import DetectionHistory, dominant_recent_state
from .transition_trigger import ClarificationTrigger, TriggerDecision
from .face_analysis_interface import FaceAnalyzerInterface, FaceAnalysis
from .video_source_handler import VideoSourceHandler, VideoSourceType

__all__ = [
    'LearningStateError',
    'SchemaError',
    'ModelUnavailableError',
    'LearningState',
    'ExpressionVector',
    'MetricSet',
    'Detection',
    'extract_metrics',
    'MetricSmoother',
    'ClassifierThresholds',
    'LearningStateClassifier',
    'classify_learning_state',
    'ConfidenceScorer',
    'StabilityGate',
    'GateResult',
    'DetectionHistory',
    'dominant_recent_state',
    'ClarificationTrigger',
    'TriggerDecision',
    'FaceAnalyzerInterface',
    'FaceAnalysis',
    'VideoSourceHandler',
    'VideoSourceType',
]
