"""Profile persistence and video storage."""

import json

import pytest
from pydantic import ValidationError

from posture_service.models import (
    BodyRegion,
    PainLevel,
    PainProfile,
    PainRegion,
    TrainingLevel,
    UserProfile,
)
from shared.storage import LocalStorageManager, ProfileStore


@pytest.fixture
def store(tmp_path):
    return ProfileStore(path=str(tmp_path / "profile.json"))


def sample_profile():
    return UserProfile(
        height_cm=180,
        weight_kg=75,
        training_level=TrainingLevel.BEGINNER,
        sport_types=["running"],
        pain_profile=PainProfile(regions=[
            PainRegion(body_part=BodyRegion.WAIST, pain_level=PainLevel.SEVERE, diagnosed=True),
        ]),
    )


def test_load_without_saved_profile(store):
    assert store.load() is None


def test_save_and_load(store):
    store.save(sample_profile())

    loaded = store.load()

    assert loaded.height_cm == 180
    assert loaded.pain_profile.regions[0].body_part == BodyRegion.WAIST
    assert loaded.pain_profile.regions[0].diagnosed


def test_profile_stored_under_fixed_key(store):
    store.save(sample_profile())
    document = json.loads(store.path.read_text())
    assert list(document) == ["posture-app-storage"]


def test_save_keeps_other_keys(store):
    store.path.write_text(json.dumps({"theme": "dark"}))
    store.save(sample_profile())

    document = json.loads(store.path.read_text())
    assert document["theme"] == "dark"


def test_invalid_stored_profile_is_ignored(store):
    store.path.write_text(json.dumps({"posture-app-storage": {"height_cm": "tall"}}))
    assert store.load() is None


@pytest.mark.parametrize("content", ["{not json", "[1, 2]"])
def test_unreadable_store_is_ignored(store, content):
    store.path.write_text(content)

    assert store.load() is None
    assert not store.clear()

    store.save(sample_profile())
    assert store.load().height_cm == 180


def test_clear(store):
    assert not store.clear()
    store.save(sample_profile())
    assert store.clear()
    assert store.load() is None


def test_duplicate_pain_regions_rejected():
    with pytest.raises(ValidationError):
        PainProfile(regions=[
            PainRegion(body_part=BodyRegion.LEFT_KNEE),
            PainRegion(body_part=BodyRegion.LEFT_KNEE, pain_level=PainLevel.SEVERE),
        ])


def test_profile_defaults():
    profile = UserProfile(height_cm=165)
    assert profile.training_level == TrainingLevel.INTERMEDIATE
    assert profile.pain_profile is None


def test_video_storage(tmp_path):
    manager = LocalStorageManager(str(tmp_path))

    stored = manager.save_video(b"\x00\x01", "clip.MP4")

    assert stored.content_type == "video/mp4"
    assert stored.path.endswith(".mp4")
    assert manager.delete_file(stored.path)
    assert not manager.delete_file(stored.path)


@pytest.mark.parametrize("filename, content", [
    ("clip.gif", b"\x00"),
    ("clip.mp4", b""),
])
def test_video_storage_rejects(tmp_path, filename, content):
    with pytest.raises(ValueError):
        LocalStorageManager(str(tmp_path)).save_video(content, filename)
