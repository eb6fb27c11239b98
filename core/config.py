"""
POSTURA Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "POSTURA"
    DEBUG: bool = True

    # Local Storage
    LOCAL_MEDIA_PATH: str = "media"
    PROFILE_STORE_PATH: str = "data/profile.json"
    PROFILE_STORAGE_KEY: str = "posture-app-storage"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Thread Pool
    THREAD_POOL_SIZE: int = 2

    # Pose Detector (MediaPipe)
    POSE_MODEL_PATH: Optional[str] = None  # .task bundle; legacy solution API when unset
    POSE_MODEL_COMPLEXITY: int = 1
    POSE_SMOOTH_LANDMARKS: bool = True
    POSE_MIN_DETECTION_CONFIDENCE: float = 0.5
    POSE_MIN_TRACKING_CONFIDENCE: float = 0.5

    # Rule evaluation
    STANDING_VISIBILITY_FLOOR: float = 0.65
    DEFAULT_VISIBILITY_FLOOR: float = 0.5

    # Timeline / playback
    SEGMENT_GAP_SECONDS: float = 0.5
    FRAME_INTERVAL_SECONDS: float = 0.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
