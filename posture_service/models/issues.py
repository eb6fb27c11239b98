"""
POSTURA Posture Service - Issues

Analysis modes, risk levels and the fixed catalog of risk issues the rule
evaluators can report. Every Issue is built from its catalog definition and
validated at construction.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from .keypoints import JointType, KEYPOINT_COUNT


class AnalysisMode(str, Enum):
    """Supported movement assessments."""
    STANDING = "standing"
    SINGLE_LEG = "single_leg"
    WALKING = "walking"
    SQUAT = "squat"
    OVERHEAD = "overhead"
    CLIMBING = "climbing"

    @property
    def display_name(self) -> str:
        return MODE_DISPLAY_NAMES[self]


MODE_DISPLAY_NAMES = {
    AnalysisMode.STANDING: "Natural Standing",
    AnalysisMode.SINGLE_LEG: "Single-Leg Stance",
    AnalysisMode.WALKING: "Natural Walking",
    AnalysisMode.SQUAT: "Bilateral Squat",
    AnalysisMode.OVERHEAD: "Overhead Reach",
    AnalysisMode.CLIMBING: "Climbing (Beta)",
}


class RiskLevel(str, Enum):
    """Risk tiers, ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]


_RISK_RANK = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def max_risk(levels: Iterable[RiskLevel], default: RiskLevel = RiskLevel.LOW) -> RiskLevel:
    """Highest risk level in ``levels``."""
    return max(levels, key=lambda level: level.rank, default=default)


@dataclass(frozen=True)
class IssueDefinition:
    """Fixed schema for one issue id."""
    id: str
    name: str
    description: str
    suggestion: str
    related_joints: FrozenSet[int]
    allowed_levels: FrozenSet[RiskLevel] = frozenset({RiskLevel.MEDIUM, RiskLevel.HIGH})


def _joints(*joints: JointType) -> FrozenSet[int]:
    return frozenset(joint.value for joint in joints)


_FIXED_MEDIUM = frozenset({RiskLevel.MEDIUM})
_FIXED_HIGH = frozenset({RiskLevel.HIGH})


ISSUE_CATALOG: Dict[str, IssueDefinition] = {
    definition.id: definition
    for definition in (
        IssueDefinition(
            id="uneven_shoulders",
            name="Uneven Shoulders",
            description="Left and right shoulder heights differ, which can come from "
                        "habitual one-sided loading or spinal curvature.",
            suggestion="Practise shrug-and-depress drills in front of a mirror, relax the "
                       "upper trapezius and keep both shoulders level.",
            related_joints=_joints(JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER),
        ),
        IssueDefinition(
            id="pelvic_tilt",
            name="Pelvic Tilt",
            description="The pelvis sits higher on one side, often linked to leg length "
                        "differences or unbalanced core strength.",
            suggestion="Build core stability and check for a functional leg length difference.",
            related_joints=_joints(JointType.LEFT_HIP, JointType.RIGHT_HIP),
        ),
        IssueDefinition(
            id="head_deviation",
            name="Head Deviation",
            description="The head drifts off the body's midline, keeping the neck "
                        "muscles under constant tension.",
            suggestion="Tuck the chin, stack the ears over the shoulders and relax the neck.",
            related_joints=_joints(JointType.NOSE, JointType.LEFT_HIP, JointType.RIGHT_HIP),
            allowed_levels=_FIXED_MEDIUM,
        ),
        IssueDefinition(
            id="trendelenburg",
            name="Pelvic Drop (Trendelenburg Sign)",
            description="During single-leg stance the pelvis drops noticeably to one "
                        "side, pointing to weak gluteus medius.",
            suggestion="Strengthen the gluteus medius with clamshells and side-lying leg raises.",
            related_joints=_joints(JointType.LEFT_HIP, JointType.RIGHT_HIP),
        ),
        IssueDefinition(
            id="arm_asymmetry",
            name="Arm Swing Asymmetry",
            description="The arms swing with clearly different amplitude while walking, "
                        "which can disturb trunk rotation balance.",
            suggestion="Practise arm swing in place in front of a mirror and find a "
                       "symmetric rhythm.",
            related_joints=_joints(JointType.LEFT_WRIST, JointType.RIGHT_WRIST),
            allowed_levels=_FIXED_MEDIUM,
        ),
        IssueDefinition(
            id="knee_valgus",
            name="Knee Valgus",
            description="The knees cave inward while squatting, a common compensation "
                        "for weak glutes or limited ankle mobility that raises ACL risk.",
            suggestion="Think of spreading the floor apart with your feet and train with "
                       "a resistance band around the knees.",
            related_joints=_joints(JointType.LEFT_KNEE, JointType.RIGHT_KNEE),
            allowed_levels=_FIXED_HIGH,
        ),
        IssueDefinition(
            id="shoulder_shrug",
            name="Shoulder Shrug",
            description="The shoulders hike toward the ears when the arms go overhead, "
                        "a sign of upper trapezius dominance over lower trapezius and "
                        "serratus anterior.",
            suggestion="Practise shoulder depression: imagine sliding the shoulder blades "
                       "into your back pockets.",
            related_joints=_joints(
                JointType.LEFT_EAR, JointType.LEFT_SHOULDER,
                JointType.RIGHT_EAR, JointType.RIGHT_SHOULDER,
            ),
            allowed_levels=_FIXED_MEDIUM,
        ),
        IssueDefinition(
            id="knee_valgus_left",
            name="Left Knee Valgus",
            description="The left knee collapses inward under load, increasing the risk "
                        "of ligament injury.",
            suggestion="Open the hip and keep the knee tracking over the toes.",
            related_joints=_joints(JointType.LEFT_KNEE, JointType.LEFT_ANKLE),
        ),
        IssueDefinition(
            id="knee_valgus_right",
            name="Right Knee Valgus",
            description="The right knee collapses inward under load, increasing the risk "
                        "of ligament injury.",
            suggestion="Open the hip and keep the knee tracking over the toes.",
            related_joints=_joints(JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE),
        ),
    )
}


@dataclass(frozen=True)
class Issue:
    """A risk finding detected on one frame. Identity is ``id``."""
    id: str
    name: str
    risk_level: RiskLevel
    description: str
    suggestion: str
    related_joints: FrozenSet[int] = field(default_factory=frozenset)
    angle_value: Optional[float] = None

    def __post_init__(self):
        definition = ISSUE_CATALOG.get(self.id)
        if definition is None:
            raise ValueError(f"Unknown issue id: {self.id!r}")
        if not isinstance(self.risk_level, RiskLevel):
            object.__setattr__(self, "risk_level", RiskLevel(self.risk_level))
        if self.risk_level not in definition.allowed_levels:
            raise ValueError(
                f"Risk level {self.risk_level.value!r} not allowed for {self.id!r}"
            )
        joints = frozenset(self.related_joints)
        if any(not 0 <= joint < KEYPOINT_COUNT for joint in joints):
            raise ValueError(f"Related joints out of range for {self.id!r}: {sorted(joints)}")
        object.__setattr__(self, "related_joints", joints)

    @classmethod
    def create(
        cls,
        issue_id: str,
        risk_level: RiskLevel,
        angle_value: Optional[float] = None,
    ) -> "Issue":
        """Build an issue from its catalog definition."""
        definition = ISSUE_CATALOG.get(issue_id)
        if definition is None:
            raise ValueError(f"Unknown issue id: {issue_id!r}")
        return cls(
            id=definition.id,
            name=definition.name,
            risk_level=risk_level,
            description=definition.description,
            suggestion=definition.suggestion,
            related_joints=definition.related_joints,
            angle_value=angle_value,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "name": self.name,
            "risk_level": self.risk_level.value,
            "description": self.description,
            "suggestion": self.suggestion,
            "related_joints": sorted(self.related_joints),
            "angle_value": self.angle_value,
        }
