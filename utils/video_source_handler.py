"""
Video Source Handler Module

Unified interface for the video sources the learning state detector can sample:
- Webcam (default camera)
- Local video files (recorded lessons)
- Video streams (RTSP, HTTP streams, etc.)
- Browser (frames pushed by the frontend to POST /learning/frame)

Browser frames are not read here: they arrive as JPEG bytes on a request
thread, are decoded with decode_frame_bytes and go straight to the detector.
"""

import logging
import sys
from enum import Enum
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Max width for pushed frames (larger frames are resized to reduce detection latency)
BROWSER_FRAME_MAX_WIDTH = 1280


def decode_frame_bytes(image_bytes: bytes) -> Optional[np.ndarray]:
    """
    Decode image bytes (e.g. JPEG) to a BGR frame.
    Frames wider than BROWSER_FRAME_MAX_WIDTH are resized.
    Returns None if the bytes are empty or not a decodable image.
    """
    if not image_bytes:
        return None
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    frame = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if frame is None:
        return None
    h, w = frame.shape[:2]
    if w > BROWSER_FRAME_MAX_WIDTH:
        scale = BROWSER_FRAME_MAX_WIDTH / w
        new_h = int(round(h * scale))
        frame = cv2.resize(frame, (BROWSER_FRAME_MAX_WIDTH, new_h), interpolation=cv2.INTER_AREA)
    return frame


class VideoSourceType(Enum):
    """Enumeration of supported video source types."""
    WEBCAM = "webcam"
    FILE = "file"
    STREAM = "stream"
    BROWSER = "browser"

    @classmethod
    def from_label(cls, label: Optional[str]) -> "VideoSourceType":
        """Parse a request label; empty means webcam. Raises ValueError for unknown labels."""
        value = (label or "webcam").strip().lower()
        try:
            return cls(value)
        except ValueError:
            raise ValueError(f"Unknown source type: {label!r}") from None


def _open_webcam(indices=(0, 1, 2)) -> cv2.VideoCapture:
    apis = [cv2.CAP_DSHOW, cv2.CAP_MSMF, cv2.CAP_ANY] if sys.platform == "win32" else [cv2.CAP_ANY]
    for api in apis:
        for index in indices:
            cap = cv2.VideoCapture(index, api)
            if cap.isOpened() and cap.read()[0]:
                return cap
            cap.release()
    return cv2.VideoCapture(0)


class VideoSourceHandler:
    """
    Handler for managing video sources of different types.

    Usage:
        handler = VideoSourceHandler()
        handler.initialize_source(VideoSourceType.WEBCAM)

        while True:
            ret, frame = handler.read_frame()
            if not ret:
                break
            # Process frame
    """

    def __init__(self):
        self.cap: Optional[cv2.VideoCapture] = None
        self.source_type: Optional[VideoSourceType] = None
        self.source_path: Optional[str] = None

    def initialize_source(self, source_type: VideoSourceType, source_path: Optional[str] = None) -> bool:
        """
        Initialize a video source.

        Args:
            source_type: Type of video source
            source_path: Path to video file or stream URL (required for FILE, optional for STREAM)

        Returns:
            True if the source is ready to be read (always True for BROWSER)
        """
        self.release()
        self.source_type = source_type
        self.source_path = source_path

        try:
            if source_type == VideoSourceType.WEBCAM:
                self.cap = _open_webcam()
                if self.cap.isOpened():
                    self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, 640)
                    self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 480)
                    self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            elif source_type == VideoSourceType.FILE:
                if not source_path:
                    raise ValueError("source_path is required for FILE source type")
                self.cap = cv2.VideoCapture(source_path)

            elif source_type == VideoSourceType.STREAM:
                if not source_path:
                    logger.warning("STREAM source type selected but no path provided, using webcam as fallback")
                    self.cap = _open_webcam(indices=(0, 1))
                else:
                    self.cap = cv2.VideoCapture(source_path)
                    self.cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

            elif source_type == VideoSourceType.BROWSER:
                # Frames are pushed by the frontend
                self.cap = None
                return True

            else:
                raise ValueError(f"Unsupported source type: {source_type}")

            return self.cap is not None and self.cap.isOpened()

        except (cv2.error, ValueError) as e:
            logger.error("Error initializing video source: %s", e)
            self.release()
            return False

    @property
    def is_pushed(self) -> bool:
        """True when frames come from the browser instead of being read here."""
        return self.source_type == VideoSourceType.BROWSER

    def read_frame(self) -> Tuple[bool, Optional[np.ndarray]]:
        """
        Read a frame from the video source.

        Returns:
            Tuple of (success, frame); frame is a BGR array when success is True
        """
        if not self.cap or not self.cap.isOpened():
            return False, None
        ret, frame = self.cap.read()
        if not ret or frame is None:
            return False, None
        return True, frame

    def release(self) -> None:
        """Release the current video source and free resources."""
        if self.cap:
            self.cap.release()
            self.cap = None
        self.source_type = None
        self.source_path = None

    def __del__(self):
        self.release()
