"""
Exceptions raised by the learning state pipeline and its face analyzers.

"No face in frame" is deliberately not an exception: analyzers return None and
the pipeline counts the frame as a failed detection.
"""


class LearningStateError(Exception):
    """Base exception for the learning state pipeline."""


class SchemaError(LearningStateError):
    """Raised when landmark geometry or an expression vector is malformed."""


class ModelUnavailableError(LearningStateError):
    """Raised when the face/expression model is not loaded or not ready."""
