"""
POSTURA Posture Service - Video Source

OpenCV-backed video file reader with playback time and seeking.
"""

import logging
from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class VideoLoadError(Exception):
    """Raised when a video file cannot be opened."""


class VideoFileSource:
    """
    Sequential frame reader over a video file.

    With ``delete_on_release`` the file is removed when the source is
    released, for uploads that belong to a single session.
    """

    def __init__(self, video_path: str, delete_on_release: bool = False):
        self.video_path = str(video_path)
        self.name = Path(video_path).name
        self.delete_on_release = delete_on_release

        self.cap = cv2.VideoCapture(self.video_path)
        if not self.cap.isOpened():
            self.cap.release()
            raise VideoLoadError(f"Cannot open video: {self.video_path}")

        self.fps = self.cap.get(cv2.CAP_PROP_FPS) or 30.0
        self.frame_count = int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self.duration = self.frame_count / self.fps if self.fps > 0 else 0.0

        logger.info(
            f"🎬 Opened {self.name}: {self.frame_count} frames, "
            f"{self.fps:.1f} fps, {self.duration:.1f}s"
        )

    @property
    def position(self) -> float:
        """Playback time of the next frame to be read, in seconds."""
        return self.cap.get(cv2.CAP_PROP_POS_MSEC) / 1000.0

    def read(self) -> Optional[Tuple[np.ndarray, float]]:
        """
        Read the next frame.

        Returns:
            (BGR frame, playback time in seconds), or None at end of video
        """
        timestamp = self.position
        ret, frame = self.cap.read()
        if not ret:
            return None
        return frame, timestamp

    def seek(self, seconds: float) -> float:
        """Move to ``seconds`` (clamped to the video length)."""
        seconds = min(max(seconds, 0.0), self.duration)
        self.cap.set(cv2.CAP_PROP_POS_MSEC, seconds * 1000.0)
        return seconds

    def release(self):
        """Release the capture handle. Safe to call more than once."""
        if self.cap is not None:
            self.cap.release()
            self.cap = None

        if self.delete_on_release:
            path = Path(self.video_path)
            if path.exists():
                path.unlink()
                logger.info(f"🗑️ Deleted {self.name}")
