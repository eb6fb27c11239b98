"""
POSTURA Storage

Local file storage for uploaded videos and the persisted user profile.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

from pydantic import ValidationError

from core.config import settings
from posture_service.models.profile import UserProfile

# Configure logging
logger = logging.getLogger(__name__)


@dataclass
class StoredFile:
    """Represents a stored file with metadata."""
    file_id: str
    filename: str
    path: str
    size_bytes: int
    content_type: str
    created_at: datetime


class LocalStorageManager:
    """
    Local file storage manager.

    Stores uploaded videos under the media folder so OpenCV can open them
    by path.
    """

    ALLOWED_VIDEO_TYPES = {'.mp4', '.mov', '.avi', '.webm', '.mkv'}
    MAX_VIDEO_SIZE = 200 * 1024 * 1024  # 200 MB

    CONTENT_TYPES = {
        '.mp4': 'video/mp4',
        '.mov': 'video/quicktime',
        '.avi': 'video/x-msvideo',
        '.webm': 'video/webm',
        '.mkv': 'video/x-matroska',
    }

    def __init__(self, base_path: str = None):
        """
        Initialize local storage manager.

        Args:
            base_path: Base directory for file storage. Defaults to LOCAL_MEDIA_PATH
        """
        self.base_path = Path(base_path or settings.LOCAL_MEDIA_PATH)
        self.video_dir = self.base_path / "videos"
        self.video_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"📁 LocalStorageManager initialized at: {self.base_path}")

    def _validate_video(self, filename: str, size: int) -> Tuple[bool, str]:
        """
        Validate a video before saving.

        Returns:
            Tuple of (is_valid, error_message)
        """
        ext = Path(filename).suffix.lower()
        if ext not in self.ALLOWED_VIDEO_TYPES:
            return False, f"Invalid video type. Allowed: {sorted(self.ALLOWED_VIDEO_TYPES)}"
        if size == 0:
            return False, "Empty video file"
        if size > self.MAX_VIDEO_SIZE:
            return False, f"Video too large. Max size: {self.MAX_VIDEO_SIZE / 1024 / 1024:.0f}MB"
        return True, ""

    def save_video(self, content: bytes, filename: str) -> StoredFile:
        """
        Save an uploaded video.

        Raises:
            ValueError: if the file type or size is not accepted
        """
        is_valid, error = self._validate_video(filename, len(content))
        if not is_valid:
            logger.error(f"Video validation failed: {error}")
            raise ValueError(error)

        file_id = str(uuid.uuid4())
        ext = Path(filename).suffix.lower()
        file_path = self.video_dir / f"{file_id}{ext}"
        file_path.write_bytes(content)

        stored_file = StoredFile(
            file_id=file_id,
            filename=filename,
            path=str(file_path),
            size_bytes=len(content),
            content_type=self.CONTENT_TYPES.get(ext, 'application/octet-stream'),
            created_at=datetime.now(timezone.utc),
        )
        logger.info(f"✅ Saved video: {filename} -> {file_path} ({len(content)} bytes)")
        return stored_file

    def delete_file(self, path: str) -> bool:
        """Delete a stored file. Returns False if it did not exist."""
        file_path = Path(path)
        if not file_path.exists():
            return False
        file_path.unlink()
        logger.info(f"🗑️ Deleted file: {file_path}")
        return True


class ProfileStore:
    """
    Persisted user profile.

    The whole record is read and written at once, under a fixed storage key
    inside a JSON document.
    """

    def __init__(self, path: str = None, key: str = None):
        self.path = Path(path or settings.PROFILE_STORE_PATH)
        self.key = key or settings.PROFILE_STORAGE_KEY

    def _read_document(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as e:
            logger.warning(f"Profile store {self.path} is not valid JSON, ignoring: {e}")
            return {}
        if not isinstance(document, dict):
            logger.warning(f"Profile store {self.path} does not hold a JSON object, ignoring")
            return {}
        return document

    def _write_document(self, document: dict):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(document, indent=2), encoding="utf-8")

    def load(self) -> Optional[UserProfile]:
        """Load the stored profile, or None if none was saved."""
        record = self._read_document().get(self.key)
        if record is None:
            return None
        try:
            return UserProfile.model_validate(record)
        except ValidationError as e:
            logger.warning(f"Stored profile under '{self.key}' is invalid, ignoring: {e}")
            return None

    def save(self, profile: UserProfile) -> UserProfile:
        """Replace the stored profile."""
        document = self._read_document()
        document[self.key] = profile.model_dump(mode="json")
        self._write_document(document)
        logger.info(f"💾 Profile saved to {self.path}")
        return profile

    def clear(self) -> bool:
        """Remove the stored profile. Returns False if none was stored."""
        document = self._read_document()
        if self.key not in document:
            return False
        del document[self.key]
        self._write_document(document)
        return True


# ============================================
# Module-level instances
# ============================================

_storage_instance: Optional[LocalStorageManager] = None
_profile_store_instance: Optional[ProfileStore] = None


def get_storage() -> LocalStorageManager:
    """Get or create the global storage manager."""
    global _storage_instance
    if _storage_instance is None:
        _storage_instance = LocalStorageManager()
    return _storage_instance


def get_profile_store() -> ProfileStore:
    """Get or create the global profile store."""
    global _profile_store_instance
    if _profile_store_instance is None:
        _profile_store_instance = ProfileStore()
    return _profile_store_instance
