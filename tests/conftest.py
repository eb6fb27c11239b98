"""Shared fixtures for the posture service tests."""

from typing import List

import pytest

from posture_service.models import Keypoint

from tests.factories import make_pose


@pytest.fixture
def neutral_pose() -> List[Keypoint]:
    return make_pose()
