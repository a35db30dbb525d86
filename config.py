"""
=============================================================================
CONFIGURATION FOR LEARNING STATE TUTOR (config.py)
=============================================================================

WHAT THIS FILE DOES (in plain language):
----------------------------------------
This file holds ALL configurable settings for the project in one place. Other
modules read from here; values come from the environment (e.g. your .env file
or system variables) so you can tune detection or swap API keys without
changing code.

MAIN GROUPS OF SETTINGS:
------------------------
  1. Azure AI Foundry  - The language model that powers the tutor chat.
  2. Face analysis     - Face detection confidence and the expression model.
  3. Learning state    - Smoothing, stability gate, history and cooldown.
  4. Server            - Host, port, debug mode and log level.

HOW VALUES ARE CHOSEN:
---------------------
  - Environment variables (e.g. SMOOTHING_ALPHA) override everything.
  - If an env var is not set, we use a safe default.
  - We never put real API keys or secrets as defaults in code.
=============================================================================
"""

import os


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return float(raw)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


# ============================================================================
# AZURE AI FOUNDRY (the tutor's language model)
# ============================================================================
# Old names (AZURE_OPENAI_*) still work so existing .env files keep working.
# ----------------------------------------------------------------------------
AZURE_FOUNDRY_KEY: str = (os.getenv("AZURE_FOUNDRY_KEY") or os.getenv("AZURE_OPENAI_KEY") or "").strip()
AZURE_FOUNDRY_ENDPOINT: str = (os.getenv("AZURE_FOUNDRY_ENDPOINT") or os.getenv("AZURE_OPENAI_ENDPOINT") or "").strip().rstrip("/")
FOUNDRY_DEPLOYMENT_NAME: str = (os.getenv("FOUNDRY_DEPLOYMENT_NAME") or os.getenv("DEPLOYMENT_NAME") or "gpt-4o").strip()
AZURE_FOUNDRY_API_VERSION: str = (os.getenv("AZURE_FOUNDRY_API_VERSION") or os.getenv("AZURE_OPENAI_API_VERSION") or "2024-11-20").strip()

# Sampling settings for tutor replies.
CHAT_TEMPERATURE: float = _env_float("CHAT_TEMPERATURE", 0.7)
CHAT_MAX_TOKENS: int = _env_int("CHAT_MAX_TOKENS", 1024)
# Number of previous question/answer turns sent back to the model as context.
CHAT_HISTORY_TURNS: int = _env_int("CHAT_HISTORY_TURNS", 6)

# ============================================================================
# FACE ANALYSIS (how we get landmarks and expressions from video)
# ============================================================================
# Minimum confidence for MediaPipe face mesh detection (0.01-0.9).
MIN_FACE_CONFIDENCE: float = _env_float("MIN_FACE_CONFIDENCE", 0.3)

# When False, the expression recognizer (fer) is not loaded and every face
# reports a neutral expression vector. Useful on machines without TensorFlow.
EXPRESSION_MODEL_ENABLED: bool = os.getenv("EXPRESSION_MODEL_ENABLED", "true").lower() == "true"

# ============================================================================
# LEARNING STATE PIPELINE
# ============================================================================
# Exponential smoothing factor for landmark metrics (0-1).
# Higher = more responsive, lower = smoother.
SMOOTHING_ALPHA: float = _env_float("SMOOTHING_ALPHA", 0.6)

# Smoothed metric sets kept for the temporal-stability part of confidence.
METRIC_HISTORY_WINDOW: int = _env_int("METRIC_HISTORY_WINDOW", 5)

# A new state is published only after this many consecutive accepted frames agree.
STABILITY_BUFFER_SIZE: int = _env_int("STABILITY_BUFFER_SIZE", 3)

# Frames below this confidence are only accepted when they repeat the last accepted state.
ACCEPT_CONFIDENCE_THRESHOLD: float = _env_float("ACCEPT_CONFIDENCE_THRESHOLD", 0.4)

# Confidence is never reported below this value (0.2-0.4).
CONFIDENCE_FLOOR: float = _env_float("CONFIDENCE_FLOOR", 0.3)
# Lower bound for the temporal stability term of confidence.
STABILITY_FLOOR: float = _env_float("STABILITY_FLOOR", 0.3)

# Accepted detections kept for the dominant-state aggregation and the debug panel.
HISTORY_CAPACITY: int = _env_int("HISTORY_CAPACITY", 20)
# Trailing window (seconds) used to compute the dominant recent state.
AGGREGATION_WINDOW_SEC: float = _env_float("AGGREGATION_WINDOW_SEC", 30.0)

# Minimum time between two automatic clarifications (focused -> confused).
# Product has used both 10s and 30s; 10s is the current default.
CLARIFICATION_COOLDOWN_SEC: float = _env_float("CLARIFICATION_COOLDOWN_SEC", 10.0)

# Seconds between analysed frames for webcam/file/stream sources.
FRAME_INTERVAL_SEC: float = _env_float("FRAME_INTERVAL_SEC", 1.0)

# Boredom detection: "scoring" (instantaneous weighted score) or
# "eye_closure" (eyes kept closed for EYE_CLOSURE_BORED_SEC seconds).
BOREDOM_STRATEGY: str = (os.getenv("BOREDOM_STRATEGY") or "scoring").strip().lower()
if BOREDOM_STRATEGY not in ("scoring", "eye_closure"):
    BOREDOM_STRATEGY = "scoring"
EYE_CLOSURE_THRESHOLD: float = _env_float("EYE_CLOSURE_THRESHOLD", 0.35)
EYE_CLOSURE_BORED_SEC: float = _env_float("EYE_CLOSURE_BORED_SEC", 5.0)

# ============================================================================
# System Prompt (tutor persona; learning state is appended per message)
# ============================================================================
SYSTEM_PROMPT: str = """You are an emotion-aware AI tutor that helps students learn effectively. You should:
- Explain concepts clearly and step by step
- Use examples and analogies the student can relate to
- Check understanding with a short question when it helps
- Stay encouraging and patient
- Keep answers focused; prefer short paragraphs over long lectures"""

# Extra guidance appended to the system prompt for each learning state.
LEARNING_STATE_GUIDANCE: dict = {
    "focused": "The student is focused. Keep the current pace and depth, and feel free to add a follow-up challenge.",
    "confused": "The student looks confused. Slow down, break the idea into smaller steps, and use a simple analogy.",
    "bored": "The student looks bored. Make it engaging: use a surprising fact, a real-world example, or a quick question.",
    "tired": "The student looks tired. Be brief, summarise the key point, and suggest a short break if appropriate.",
}

# Prompt used for automatic clarification when the student turns confused.
# {question} and {answer} are the last exchange.
SIMPLIFY_PROMPT: str = """The student just looked confused after reading your explanation.

Their question was: "{question}"

Your previous answer was: "{answer}"

Please provide a MUCH SIMPLER explanation:
- Use only 2-3 SHORT sentences
- Include ONE easy real-world example
- Use simple everyday language (no technical terms)
- Focus ONLY on the main idea

Start with: "Let me explain that more simply..." """

# ============================================================================
# Application Configuration
# ============================================================================
FLASK_PORT: int = _env_int("FLASK_PORT", 5000)
FLASK_DEBUG: bool = os.getenv("FLASK_DEBUG", "false").lower() == "true"
FLASK_HOST: str = os.getenv("FLASK_HOST", "0.0.0.0")
LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()

# ============================================================================
# Helper Functions
# ============================================================================

def warn_missing_config() -> None:
    """
    Print warnings when required configuration is missing (no secrets in code; set env vars).
    Call from app startup to help operators. Does not raise.
    """
    import sys
    missing = []
    if not AZURE_FOUNDRY_KEY:
        missing.append("AZURE_FOUNDRY_KEY (or AZURE_OPENAI_KEY)")
    if not AZURE_FOUNDRY_ENDPOINT:
        missing.append("AZURE_FOUNDRY_ENDPOINT (or AZURE_OPENAI_ENDPOINT)")
    if missing:
        print("Config warning: the following env vars are not set. Tutor chat will be unavailable:", ", ".join(missing), file=sys.stderr)


def is_chat_enabled() -> bool:
    """True when both the Foundry key and endpoint are configured."""
    return bool(AZURE_FOUNDRY_KEY and AZURE_FOUNDRY_ENDPOINT)


def get_learning_state_config() -> dict:
    """Learning state pipeline settings as a JSON-friendly dictionary."""
    return {
        "smoothingAlpha": SMOOTHING_ALPHA,
        "metricHistoryWindow": METRIC_HISTORY_WINDOW,
        "stabilityBufferSize": STABILITY_BUFFER_SIZE,
        "acceptConfidenceThreshold": ACCEPT_CONFIDENCE_THRESHOLD,
        "confidenceFloor": CONFIDENCE_FLOOR,
        "stabilityFloor": STABILITY_FLOOR,
        "historyCapacity": HISTORY_CAPACITY,
        "aggregationWindowSec": AGGREGATION_WINDOW_SEC,
        "clarificationCooldownSec": CLARIFICATION_COOLDOWN_SEC,
        "frameIntervalSec": FRAME_INTERVAL_SEC,
        "boredomStrategy": BOREDOM_STRATEGY,
        "eyeClosureThreshold": EYE_CLOSURE_THRESHOLD,
        "eyeClosureBoredSec": EYE_CLOSURE_BORED_SEC,
    }


def build_config_response() -> dict:
    """
    Build the configuration response for GET /config/all.
    Secrets (API keys) are never included.
    """
    return {
        "foundry": {
            "endpoint": AZURE_FOUNDRY_ENDPOINT,
            "deploymentName": FOUNDRY_DEPLOYMENT_NAME,
            "apiVersion": AZURE_FOUNDRY_API_VERSION,
            "enabled": is_chat_enabled(),
        },
        "faceAnalysis": {
            "minFaceConfidence": MIN_FACE_CONFIDENCE,
            "expressionModelEnabled": EXPRESSION_MODEL_ENABLED,
        },
        "learningState": get_learning_state_config(),
        "systemPrompt": SYSTEM_PROMPT,
    }
