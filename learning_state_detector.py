"""
Learning State Detector.

Session driver around LearningStatePipeline: samples frames from a video source
at a fixed cadence (default 1 frame/s) in a daemon thread, or accepts frames
pushed by the browser, runs the face analyzer, feeds the pipeline and, when the
student goes from focused to confused, asks the tutor for a simplified
explanation of its last answer.

Upstream inference is serialized: a frame that arrives while another is still
being analysed is dropped, never queued. When processing overruns the
interval, missed ticks are skipped.
"""

import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

import config
from learning_state_pipeline import FrameResult, LearningStatePipeline, PipelineSettings
from utils.face_analysis_interface import FaceAnalyzerInterface
from utils.pipeline_errors import ModelUnavailableError, SchemaError
from utils.video_source_handler import VideoSourceHandler, VideoSourceType, decode_frame_bytes

logger = logging.getLogger(__name__)


def _default_tutor_provider():
    if not config.is_chat_enabled():
        return None
    from services.tutor_chat import get_tutor_chat_service
    return get_tutor_chat_service()


def _default_analyzer() -> FaceAnalyzerInterface:
    from utils.emotion_recognizer import EmotionRecognizer
    from utils.mediapipe_detector import MediaPipeFaceAnalyzer
    return MediaPipeFaceAnalyzer(
        min_detection_confidence=config.MIN_FACE_CONFIDENCE,
        emotion_recognizer=EmotionRecognizer(enabled=config.EXPRESSION_MODEL_ENABLED),
    )


class LearningStateDetector:
    """
    Main learning state detector class.

    Usage:
        detector = LearningStateDetector()
        detector.start_detection(source_type=VideoSourceType.WEBCAM)

        # Anywhere (thread-safe):
        snapshot = detector.get_snapshot()
        state = detector.get_dominant_state()
    """

    def __init__(
        self,
        settings: Optional[PipelineSettings] = None,
        analyzer: Optional[FaceAnalyzerInterface] = None,
        tutor_provider: Optional[Callable[[], object]] = None,
        frame_interval_sec: Optional[float] = None,
    ):
        """
        Args:
            settings: Pipeline settings (defaults to PipelineSettings.from_config())
            analyzer: Face analyzer; created lazily (MediaPipe + fer) when omitted
            tutor_provider: Callable returning the tutor chat service, or None when chat is disabled
            frame_interval_sec: Seconds between sampled frames (defaults to config.FRAME_INTERVAL_SEC)
        """
        self.pipeline = LearningStatePipeline(settings or PipelineSettings.from_config())
        self.analyzer = analyzer
        self.tutor_provider = tutor_provider or _default_tutor_provider
        interval = config.FRAME_INTERVAL_SEC if frame_interval_sec is None else frame_interval_sec
        self.frame_interval_sec = max(0.01, float(interval))

        self.video_handler = VideoSourceHandler()
        self.source_type: Optional[VideoSourceType] = None
        self.detection_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.is_running = False
        self.model_ready = analyzer is not None and analyzer.is_available()
        self.last_error: Optional[str] = None

        self._inference_lock = threading.Lock()
        self.dropped_frames = 0
        self.skipped_ticks = 0

        self.lock = threading.Lock()
        self._pending_clarification: Optional[dict] = None
        self._clarification_thread: Optional[threading.Thread] = None

    def _ensure_analyzer(self) -> bool:
        if self.analyzer is None:
            try:
                self.analyzer = _default_analyzer()
            except ModelUnavailableError as e:
                self.last_error = str(e)
                logger.error("Face analyzer unavailable: %s", e)
                return False
        self.model_ready = self.analyzer.is_available()
        if not self.model_ready:
            self.last_error = f"Face analyzer '{self.analyzer.get_name()}' is not ready"
        return self.model_ready

    def start_detection(
        self,
        source_type: VideoSourceType = VideoSourceType.WEBCAM,
        source_path: Optional[str] = None,
    ) -> bool:
        """
        Start a learning state session.

        Args:
            source_type: WEBCAM, FILE, STREAM or BROWSER (frames pushed via submit_frame_bytes)
            source_path: Path to video file or stream URL (required for FILE)

        Returns:
            bool: True if detection started successfully, False otherwise
        """
        if self.is_running:
            self.stop_detection()

        self.pipeline.reset()
        self.last_error = None
        with self.lock:
            self.dropped_frames = 0
            self.skipped_ticks = 0
            self._pending_clarification = None

        if not self._ensure_analyzer():
            return False

        if not self.video_handler.initialize_source(source_type, source_path):
            self.last_error = f"Failed to initialize video source {source_type.value}"
            logger.error("%s (path=%s)", self.last_error, source_path)
            return False

        self.source_type = source_type
        self.is_running = True
        self._stop_event.clear()
        logger.info(
            "Learning state detection started: source_type=%s, source_path=%s, analyzer=%s",
            source_type.value, source_path, self.analyzer.get_name(),
        )

        if not self.video_handler.is_pushed:
            self.detection_thread = threading.Thread(target=self._detection_loop, daemon=True)
            self.detection_thread.start()
        return True

    def stop_detection(self) -> None:
        """Stop detection between frames and release the video source."""
        self.is_running = False
        self._stop_event.set()
        if self.detection_thread and self.detection_thread.is_alive():
            self.detection_thread.join(timeout=max(2.0, 2 * self.frame_interval_sec))
        self.detection_thread = None
        self.video_handler.release()
        self.source_type = None
        logger.info("Learning state detection stopped")

    def close(self) -> None:
        self.stop_detection()
        if self.analyzer is not None:
            self.analyzer.close()

    def _detection_loop(self) -> None:
        """Sample one frame per interval until stopped; nothing from a single frame ends the loop."""
        next_tick = time.monotonic()
        while not self._stop_event.is_set():
            try:
                ret, frame = self.video_handler.read_frame()
                if ret:
                    self.submit_frame(frame)
                elif self.source_type == VideoSourceType.FILE:
                    logger.info("Video file finished")
                    self.is_running = False
                    break
            except ModelUnavailableError as e:
                logger.warning("Frame skipped, model not ready: %s", e)
            except Exception as e:
                logger.exception("Frame processing failed")
                self.pipeline.record_failure(str(e), time.time())

            next_tick += self.frame_interval_sec
            now = time.monotonic()
            if next_tick < now:
                missed = int((now - next_tick) / self.frame_interval_sec) + 1
                with self.lock:
                    self.skipped_ticks += missed
                next_tick += missed * self.frame_interval_sec
                logger.debug("Frame processing overran the interval, skipped %d tick(s)", missed)
            self._stop_event.wait(max(0.0, next_tick - time.monotonic()))

    def submit_frame(self, frame: np.ndarray, now: Optional[float] = None) -> Optional[FrameResult]:
        """
        Analyse one BGR frame and feed the pipeline.

        Returns:
            FrameResult, or None when the frame was dropped because an inference is in flight

        Raises:
            ModelUnavailableError: if the analyzer is not ready (no pipeline state is touched)
        """
        if not self._inference_lock.acquire(blocking=False):
            with self.lock:
                self.dropped_frames += 1
            logger.debug("Inference in flight, dropping frame")
            return None
        try:
            return self._process(frame, now)
        finally:
            self._inference_lock.release()

    def submit_frame_bytes(self, image_bytes: bytes, now: Optional[float] = None) -> Optional[FrameResult]:
        """Decode a pushed JPEG/PNG frame and submit it. Raises SchemaError for undecodable bytes."""
        frame = decode_frame_bytes(image_bytes)
        if frame is None:
            raise SchemaError("Could not decode frame image")
        return self.submit_frame(frame, now)

    def _process(self, frame: np.ndarray, now: Optional[float]) -> FrameResult:
        if self.analyzer is None:
            raise ModelUnavailableError("Face analyzer not initialized")
        now = time.time() if now is None else now
        try:
            analysis = self.analyzer.analyze(frame)
        except ModelUnavailableError:
            self.model_ready = False
            raise
        except Exception as e:
            logger.exception("Face analysis failed")
            return self.pipeline.record_failure(str(e), now)
        self.model_ready = True

        if analysis is None:
            return self.pipeline.record_no_face(now)

        try:
            tutor = self.tutor_provider()
        except Exception:
            logger.exception("Tutor chat service unavailable, frame processed without it")
            tutor = None
        consumer_busy = bool(tutor is not None and tutor.is_busy)
        try:
            result = self.pipeline.process_frame(
                analysis.landmarks,
                analysis.expressions,
                now=now,
                consumer_busy=consumer_busy,
            )
        except Exception as e:
            logger.exception("Learning state pipeline failed")
            return self.pipeline.record_failure(str(e), now)
        if result.clarification_due:
            self._request_clarification(tutor)
        return result

    def _request_clarification(self, tutor) -> None:
        if tutor is None:
            logger.info("Student looks confused but tutor chat is not configured")
            return
        self._clarification_thread = threading.Thread(
            target=self._run_clarification, args=(tutor,), daemon=True
        )
        self._clarification_thread.start()

    def _run_clarification(self, tutor) -> None:
        try:
            text = tutor.generate_simplified_explanation()
        except Exception:
            logger.exception("Auto-clarification failed")
            return
        if text:
            with self.lock:
                self._pending_clarification = {"text": text, "timestamp": time.time()}

    def get_and_clear_pending_clarification(self) -> Optional[dict]:
        """Return the latest automatic clarification (if any) and clear it."""
        with self.lock:
            pending = self._pending_clarification
            self._pending_clarification = None
            return pending

    def get_dominant_state(self) -> str:
        return self.pipeline.dominant_recent_state().value

    def get_snapshot(self) -> dict:
        """Diagnostic view: pipeline snapshot plus session status."""
        snapshot = self.pipeline.snapshot()
        with self.lock:
            dropped, skipped = self.dropped_frames, self.skipped_ticks
        snapshot.update({
            "isRunning": self.is_running,
            "modelReady": self.model_ready,
            "sourceType": self.source_type.value if self.source_type else None,
            "analyzer": self.analyzer.get_name() if self.analyzer else None,
            "droppedFrames": dropped,
            "skippedTicks": skipped,
            "lastError": self.last_error,
        })
        return snapshot
