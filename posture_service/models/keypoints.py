"""
POSTURA Posture Service - Keypoint Model

MediaPipe Pose landmark schema (33 joints) and the per-frame keypoint set
consumed by the rule evaluators.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence


KEYPOINT_COUNT = 33


class JointType(Enum):
    """Body joint indices of the MediaPipe Pose landmark model."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


@dataclass(frozen=True)
class Keypoint:
    """A single detected landmark: normalized position plus confidence."""
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None

    @property
    def confidence(self) -> float:
        """Visibility with an absent value read as 'not visible'."""
        return self.visibility if self.visibility is not None else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "z": self.z, "visibility": self.visibility}


KeypointSet = Sequence[Keypoint]


def is_complete(keypoints: Optional[KeypointSet]) -> bool:
    """True when a full 33-point set was detected."""
    return keypoints is not None and len(keypoints) >= KEYPOINT_COUNT


def all_visible(keypoints: KeypointSet, joints: Iterable[JointType], floor: float) -> bool:
    """Every listed joint has visibility strictly above ``floor``."""
    return all(keypoints[joint.value].confidence > floor for joint in joints)


def keypoints_from_dicts(records: Iterable[Dict[str, Any]]) -> List[Keypoint]:
    """Build a keypoint set from JSON-like ``{x, y, z, visibility}`` records."""
    return [
        Keypoint(
            x=float(record["x"]),
            y=float(record["y"]),
            z=float(record.get("z") or 0.0),
            visibility=None if record.get("visibility") is None else float(record["visibility"]),
        )
        for record in records
    ]


def keypoints_to_dicts(keypoints: KeypointSet) -> List[Dict[str, Any]]:
    """JSON-serializable keypoints, annotated with joint names for renderers."""
    return [
        {
            "id": idx,
            "name": JointType(idx).name if idx < KEYPOINT_COUNT else f"point_{idx}",
            **kp.to_dict(),
        }
        for idx, kp in enumerate(keypoints)
    ]
