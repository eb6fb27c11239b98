"""Pose detector and video source adapters."""

import numpy as np
import pytest

from posture_service.models import PoseDetector, VideoFileSource, VideoLoadError

from tests.factories import write_clip


def test_missing_video_raises(tmp_path):
    with pytest.raises(VideoLoadError):
        VideoFileSource(str(tmp_path / "nope.mp4"))


def test_corrupt_video_raises(tmp_path):
    path = tmp_path / "broken.mp4"
    path.write_bytes(b"definitely not an mp4")
    with pytest.raises(VideoLoadError):
        VideoFileSource(str(path))


def test_video_reads_frames_and_keeps_file(tmp_path):
    path = write_clip(tmp_path / "clip.avi")
    source = VideoFileSource(str(path))

    frame, timestamp = source.read()
    source.release()

    assert frame.shape == (32, 32, 3)
    assert timestamp == 0.0
    assert path.exists()


def test_owned_video_deleted_on_release(tmp_path):
    path = write_clip(tmp_path / "clip.avi")
    source = VideoFileSource(str(path), delete_on_release=True)

    source.release()
    source.release()

    assert not path.exists()


@pytest.mark.asyncio
async def test_failed_detector_reports_no_detection(monkeypatch):
    detector = PoseDetector()
    attempts = []

    def failing_init():
        attempts.append(1)
        detector._initialized = True
        detector.pose_detector = None

    monkeypatch.setattr(detector, "_init_mediapipe", failing_init)
    frame = np.zeros((8, 8, 3), dtype=np.uint8)

    assert await detector.detect(frame) is None
    assert await detector.detect(frame) is None
    assert attempts == [1]
    assert not detector.available
