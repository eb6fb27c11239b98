"""
POSTURA Posture Service - Pose Detector

MediaPipe-based pose estimation producing the 33-point keypoint set.
Inference runs on the inference worker pool; the frame loop awaits it.
"""

import logging
from typing import List, Optional

import cv2
import numpy as np

from core.config import settings
from core.threading import run_inference

from .keypoints import KEYPOINT_COUNT, Keypoint

logger = logging.getLogger(__name__)


class PoseDetector:
    """
    MediaPipe pose detector.

    The model is loaded on first use. A load failure is logged once and the
    detector then reports "no detection" for every frame; loading is not
    retried.
    """

    def __init__(self, model_path: Optional[str] = None):
        """
        Initialize pose detector.

        Args:
            model_path: Path to a MediaPipe pose landmarker ``.task`` bundle
                (uses the legacy solution API if None)
        """
        self.model_path = model_path or settings.POSE_MODEL_PATH
        self.pose_detector = None
        self._use_tasks_api = False
        self._initialized = False
        self.frames_processed = 0

    @property
    def available(self) -> bool:
        return self.pose_detector is not None

    def _init_mediapipe(self):
        """Initialize MediaPipe pose detector."""
        self._initialized = True
        try:
            import mediapipe as mp

            if self.model_path:
                from mediapipe.tasks import python as mp_python
                from mediapipe.tasks.python import vision

                base_options = mp_python.BaseOptions(model_asset_path=self.model_path)
                options = vision.PoseLandmarkerOptions(
                    base_options=base_options,
                    running_mode=vision.RunningMode.IMAGE,
                    num_poses=1,
                    min_pose_detection_confidence=settings.POSE_MIN_DETECTION_CONFIDENCE,
                    min_tracking_confidence=settings.POSE_MIN_TRACKING_CONFIDENCE,
                )
                self.pose_detector = vision.PoseLandmarker.create_from_options(options)
                self._use_tasks_api = True
            else:
                self.pose_detector = mp.solutions.pose.Pose(
                    static_image_mode=False,
                    model_complexity=settings.POSE_MODEL_COMPLEXITY,
                    smooth_landmarks=settings.POSE_SMOOTH_LANDMARKS,
                    enable_segmentation=False,
                    min_detection_confidence=settings.POSE_MIN_DETECTION_CONFIDENCE,
                    min_tracking_confidence=settings.POSE_MIN_TRACKING_CONFIDENCE,
                )
            logger.info("✅ MediaPipe pose detector initialized")
        except Exception as e:
            logger.error(f"⚠️ Failed to initialize MediaPipe, pose detection disabled: {e}")
            self.pose_detector = None

    def detect_sync(self, frame: np.ndarray) -> Optional[List[Keypoint]]:
        """
        Detect pose keypoints in a BGR frame.

        Args:
            frame: BGR image as numpy array (H, W, 3), OpenCV layout

        Returns:
            33 keypoints, or None when no person was detected
        """
        if not self._initialized:
            self._init_mediapipe()
        if self.pose_detector is None:
            return None

        rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        self.frames_processed += 1

        if self._use_tasks_api:
            import mediapipe as mp

            result = self.pose_detector.detect(mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb))
            if not result.pose_landmarks:
                return None
            landmarks = result.pose_landmarks[0]
        else:
            results = self.pose_detector.process(rgb)
            if not results.pose_landmarks:
                return None
            landmarks = results.pose_landmarks.landmark

        keypoints = [
            Keypoint(x=lm.x, y=lm.y, z=lm.z, visibility=lm.visibility)
            for lm in landmarks
        ]
        if len(keypoints) < KEYPOINT_COUNT:
            logger.debug(f"Partial landmark set ({len(keypoints)} points) treated as no detection")
            return None
        return keypoints

    async def detect(self, frame: np.ndarray) -> Optional[List[Keypoint]]:
        """Awaitable detection on the inference worker pool."""
        return await run_inference(self.detect_sync, frame)

    def close(self):
        """Release resources."""
        if self.pose_detector is not None and hasattr(self.pose_detector, "close"):
            self.pose_detector.close()
        self.pose_detector = None
