"""
Flask routes for the Learning State Tutor.

Handles health, learning state detection start/stop/frame/state/dominant,
tutor chat (tagged with the student's dominant recent learning state) and config.
"""

import logging
from typing import Optional

from flask import Blueprint, request, jsonify

from services.tutor_chat import get_tutor_chat_service
from utils.pipeline_errors import ModelUnavailableError, SchemaError
from utils.video_source_handler import VideoSourceType
import config

logger = logging.getLogger(__name__)

# Create a blueprint for better organization
api = Blueprint('api', __name__)

# Global learning state detector instance (one per server process).
# LearningStateDetector is imported lazily in start_learning_detection to defer loading heavy deps.
learning_detector = None  # type: Optional["LearningStateDetector"]


def register_routes(app) -> None:
    """Attach all API routes to the Flask app."""
    app.register_blueprint(api)


def _current_learning_state() -> Optional[str]:
    """Dominant recent learning state label, or None when detection is not running."""
    if learning_detector is None or not learning_detector.is_running:
        return None
    return learning_detector.get_dominant_state()


@api.route("/health", methods=["GET"])
def health():
    """Liveness check."""
    return jsonify({
        "status": "ok",
        "detectionRunning": bool(learning_detector and learning_detector.is_running),
        "chatEnabled": config.is_chat_enabled(),
    })


@api.route("/chat", methods=["POST"])
def chat():
    """
    Tutor chat endpoint.

    The reply is adapted to the student's dominant learning state over the last
    AGGREGATION_WINDOW_SEC seconds. When detection is not running, an optional
    "learningState" in the body is used instead.

    Request Body:
        {
            "message": "User's message text",
            "learningState": "optional label used when detection is off"
        }

    Returns:
        JSON: {
            "response": "Tutor's reply",
            "learningState": "focused" | "confused" | "bored" | "tired" | null
        }
    """
    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400

    data = request.get_json(silent=True) or {}
    user_input = (data.get("message") or "").strip()
    if not user_input:
        return jsonify({"error": "Missing message"}), 400

    if not config.is_chat_enabled():
        return jsonify({"error": "Tutor chat is not configured"}), 503

    learning_state = _current_learning_state() or (data.get("learningState") or None)

    try:
        response_text = get_tutor_chat_service().generate_response(user_input, learning_state)
        return jsonify({"response": response_text, "learningState": learning_state})
    except Exception as e:
        logger.exception("Chat request failed")
        return jsonify({
            "error": "Failed to get tutor response",
            "details": str(e)
        }), 500


@api.route("/chat/clear", methods=["POST"])
def clear_chat():
    """Clear the tutor's conversation history."""
    if config.is_chat_enabled():
        get_tutor_chat_service().clear_history()
    return jsonify({"success": True, "message": "Conversation cleared"})


@api.route("/config/all", methods=["GET"])
def get_all_config():
    """Return non-secret configuration (Foundry, face analysis, learning state pipeline)."""
    return jsonify(config.build_config_response())


@api.route("/learning/start", methods=["POST"])
def start_learning_detection():
    """
    Start learning state detection from a video source.

    Request Body:
        {
            "sourceType": "webcam" | "file" | "stream" | "browser",
            "sourcePath": "optional path for file/stream sources (not used for browser)"
        }

    Returns:
        JSON: {
            "success": true,
            "message": "Learning state detection started from webcam",
            "analyzer": "mediapipe"
        }
    """
    global learning_detector
    # Lazy import: defer loading the detector (mediapipe, cv2, fer) until first start
    from learning_state_detector import LearningStateDetector

    if not request.is_json:
        return jsonify({"error": "Request must be JSON"}), 400

    data = request.get_json(silent=True) or {}
    try:
        source_type = VideoSourceType.from_label(data.get("sourceType"))
    except ValueError:
        return jsonify({
            "error": f"Invalid sourceType: {data.get('sourceType')}. Must be 'webcam', 'file', 'stream', or 'browser'"
        }), 400

    source_path = data.get("sourcePath")
    if source_type == VideoSourceType.BROWSER:
        source_path = None
    if source_type == VideoSourceType.FILE and not source_path:
        return jsonify({"error": "sourcePath is required for file sources"}), 400

    try:
        if learning_detector is None:
            learning_detector = LearningStateDetector()

        if not learning_detector.start_detection(source_type, source_path):
            status = 503 if not learning_detector.model_ready else 500
            return jsonify({
                "error": "Failed to start detection",
                "details": learning_detector.last_error,
            }), status

        return jsonify({
            "success": True,
            "message": f"Learning state detection started from {source_type.value}",
            "analyzer": learning_detector.analyzer.get_name() if learning_detector.analyzer else None,
        })

    except Exception as e:
        logger.exception("Failed to start learning state detection")
        return jsonify({
            "error": "Failed to start learning state detection",
            "details": str(e)
        }), 500


@api.route("/learning/stop", methods=["POST"])
def stop_learning_detection():
    """Stop learning state detection. The last session's snapshot stays readable."""
    try:
        if learning_detector:
            learning_detector.stop_detection()
        return jsonify({"success": True, "message": "Learning state detection stopped"})
    except Exception as e:
        return jsonify({
            "error": "Failed to stop learning state detection",
            "details": str(e)
        }), 500


@api.route("/learning/frame", methods=["POST"])
def push_learning_frame():
    """
    Receive a single frame from the browser (sourceType 'browser').
    Expects raw JPEG body or multipart/form-data with an image file.

    Returns:
        202 with the frame result when processed,
        429 when dropped because the previous frame is still being analysed,
        503 when the face model is not ready,
        409 when browser detection is not running
    """
    if (
        learning_detector is None
        or not learning_detector.is_running
        or learning_detector.source_type != VideoSourceType.BROWSER
    ):
        return jsonify({"error": "Browser learning state detection not started"}), 409

    if request.files:
        # Multipart form with "frame" or "image"
        f = request.files.get("frame") or request.files.get("image") or next(iter(request.files.values()))
        data = f.read()
    else:
        data = request.get_data()
    if not data:
        return jsonify({"error": "No image data"}), 400

    try:
        result = learning_detector.submit_frame_bytes(data)
    except SchemaError as e:
        return jsonify({"error": "Invalid or unsupported image", "details": str(e)}), 400
    except ModelUnavailableError as e:
        return jsonify({"error": "Face model not ready", "details": str(e)}), 503

    if result is None:
        return jsonify({"error": "Previous frame still processing, frame dropped"}), 429
    return jsonify(result.to_dict()), 202


@api.route("/learning/state", methods=["GET"])
def get_learning_state():
    """
    Diagnostic snapshot: published state, dominant recent state, counters,
    history and the latest automatic clarification (consumed on read).
    """
    if learning_detector is None:
        return jsonify({"error": "Learning state detection not started"}), 404

    snapshot = learning_detector.get_snapshot()
    snapshot["pendingClarification"] = learning_detector.get_and_clear_pending_clarification()
    return jsonify(snapshot)


@api.route("/learning/dominant", methods=["GET"])
def get_dominant_learning_state():
    """Dominant recent learning state (what the tutor receives with the next message)."""
    if learning_detector is None:
        return jsonify({"error": "Learning state detection not started"}), 404
    return jsonify({
        "state": learning_detector.get_dominant_state(),
        "windowSec": learning_detector.pipeline.settings.aggregation_window_sec,
    })
