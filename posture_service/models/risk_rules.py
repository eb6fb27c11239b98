"""
POSTURA Posture Service - Risk Rules

Per-mode rule evaluators. Each one maps a single frame's keypoint set to
zero or more Issues using frame-local geometry only.

Distance thresholds are fractions of shoulder width so they hold across
camera distance and zoom. Walking, squat and climbing thresholds are raw
normalized image distances.
"""

import logging
from typing import Callable, Dict, List, Optional, Union

from core.config import settings

from .geometry import distance, midpoint
from .issues import AnalysisMode, Issue, RiskLevel
from .keypoints import JointType, KeypointSet, all_visible, is_complete

logger = logging.getLogger(__name__)


Evaluator = Callable[[KeypointSet], List[Issue]]


# ═══════════════════════════════════════════════════════════════════════════════
# THRESHOLDS
# ═══════════════════════════════════════════════════════════════════════════════

RULE_THRESHOLDS = {
    AnalysisMode.STANDING: {
        "shoulder_level": 0.05,        # x shoulder width
        "shoulder_level_high": 0.08,
        "pelvic_level": 0.05,
        "pelvic_level_high": 0.08,
        "head_offset": 0.10,
    },
    AnalysisMode.SINGLE_LEG: {
        "pelvic_drop": 0.08,           # x shoulder width
        "pelvic_drop_high": 0.12,
    },
    AnalysisMode.WALKING: {
        "stride_width": 0.10,          # ankle X separation gate
        "arm_swing_diff": 0.15,
    },
    AnalysisMode.SQUAT: {
        "squat_depth_gap": 0.15,       # hips within this of knee height
        "knee_to_ankle_ratio": 0.8,
    },
    AnalysisMode.OVERHEAD: {
        "trap_to_head_ratio": 0.5,     # shoulder-ear gap vs inter-ear distance
    },
    AnalysisMode.CLIMBING: {
        "inward_bias": 0.08,
        "inward_bias_high": 0.15,
    },
}

REQUIRED_JOINTS = {
    AnalysisMode.STANDING: (
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
        JointType.LEFT_HIP, JointType.RIGHT_HIP,
        JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE,
    ),
    AnalysisMode.SINGLE_LEG: (
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
        JointType.LEFT_HIP, JointType.RIGHT_HIP,
    ),
    AnalysisMode.WALKING: (
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
        JointType.LEFT_WRIST, JointType.RIGHT_WRIST,
        JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE,
    ),
    AnalysisMode.SQUAT: (
        JointType.LEFT_HIP, JointType.RIGHT_HIP,
        JointType.LEFT_KNEE, JointType.RIGHT_KNEE,
        JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE,
    ),
    AnalysisMode.OVERHEAD: (
        JointType.LEFT_EAR, JointType.RIGHT_EAR,
        JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
        JointType.LEFT_WRIST, JointType.RIGHT_WRIST,
    ),
}

CLIMBING_SIDES = {
    "left": (JointType.LEFT_KNEE, JointType.LEFT_ANKLE),
    "right": (JointType.RIGHT_KNEE, JointType.RIGHT_ANKLE),
}


def visibility_floor(mode: AnalysisMode) -> float:
    """Minimum visibility a required joint must exceed for ``mode``."""
    if mode == AnalysisMode.STANDING:
        return settings.STANDING_VISIBILITY_FLOOR
    return settings.DEFAULT_VISIBILITY_FLOOR


def _has_evidence(keypoints: KeypointSet, mode: AnalysisMode) -> bool:
    if not is_complete(keypoints):
        return False
    return all_visible(keypoints, REQUIRED_JOINTS[mode], visibility_floor(mode))


def _tiered(value: float, high_threshold: float) -> RiskLevel:
    return RiskLevel.HIGH if value > high_threshold else RiskLevel.MEDIUM


# ═══════════════════════════════════════════════════════════════════════════════
# STANDING
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_standing(keypoints: KeypointSet) -> List[Issue]:
    """
    Natural standing posture.

    Requires shoulders, hips and ankles all clearly visible; a partially
    occluded subject yields no findings at all.

    Rules:
    - uneven_shoulders: shoulder height difference vs shoulder width
    - pelvic_tilt: hip height difference vs shoulder width
    - head_deviation: nose offset from the hip midline
    """
    issues: List[Issue] = []
    if not _has_evidence(keypoints, AnalysisMode.STANDING):
        return issues

    t = RULE_THRESHOLDS[AnalysisMode.STANDING]

    shoulder_left = keypoints[JointType.LEFT_SHOULDER.value]
    shoulder_right = keypoints[JointType.RIGHT_SHOULDER.value]
    hip_left = keypoints[JointType.LEFT_HIP.value]
    hip_right = keypoints[JointType.RIGHT_HIP.value]
    nose = keypoints[JointType.NOSE.value]

    shoulder_diff_y = abs(shoulder_left.y - shoulder_right.y)
    hip_diff_y = abs(hip_left.y - hip_right.y)
    nose_offset_x = abs(nose.x - midpoint(hip_left, hip_right).x)

    # Body scale reference
    shoulder_width = distance(shoulder_left, shoulder_right)

    if shoulder_diff_y > shoulder_width * t["shoulder_level"]:
        issues.append(Issue.create(
            "uneven_shoulders",
            _tiered(shoulder_diff_y, shoulder_width * t["shoulder_level_high"]),
        ))

    if hip_diff_y > shoulder_width * t["pelvic_level"]:
        issues.append(Issue.create(
            "pelvic_tilt",
            _tiered(hip_diff_y, shoulder_width * t["pelvic_level_high"]),
        ))

    if nose_offset_x > shoulder_width * t["head_offset"]:
        issues.append(Issue.create("head_deviation", RiskLevel.MEDIUM))

    return issues


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLE-LEG STANCE
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_single_leg(keypoints: KeypointSet) -> List[Issue]:
    """Pelvic drop on the unsupported side (Trendelenburg sign)."""
    issues: List[Issue] = []
    if not _has_evidence(keypoints, AnalysisMode.SINGLE_LEG):
        return issues

    t = RULE_THRESHOLDS[AnalysisMode.SINGLE_LEG]

    hip_drop = abs(keypoints[JointType.LEFT_HIP.value].y - keypoints[JointType.RIGHT_HIP.value].y)
    shoulder_width = distance(
        keypoints[JointType.LEFT_SHOULDER.value],
        keypoints[JointType.RIGHT_SHOULDER.value],
    )

    if hip_drop > shoulder_width * t["pelvic_drop"]:
        issues.append(Issue.create(
            "trendelenburg",
            _tiered(hip_drop, shoulder_width * t["pelvic_drop_high"]),
            angle_value=hip_drop,
        ))

    return issues


# ═══════════════════════════════════════════════════════════════════════════════
# WALKING
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_walking(keypoints: KeypointSet) -> List[Issue]:
    """
    Arm swing symmetry, checked only on frames caught mid-stride.

    There is no velocity tracking: the stride gate (feet clearly apart)
    stands in for the gait phase on each frame independently.
    """
    issues: List[Issue] = []
    if not _has_evidence(keypoints, AnalysisMode.WALKING):
        return issues

    t = RULE_THRESHOLDS[AnalysisMode.WALKING]

    stride_width = abs(keypoints[JointType.LEFT_ANKLE.value].x - keypoints[JointType.RIGHT_ANKLE.value].x)
    if stride_width <= t["stride_width"]:
        return issues

    left_swing = abs(keypoints[JointType.LEFT_WRIST.value].x - keypoints[JointType.LEFT_SHOULDER.value].x)
    right_swing = abs(keypoints[JointType.RIGHT_WRIST.value].x - keypoints[JointType.RIGHT_SHOULDER.value].x)

    if abs(left_swing - right_swing) > t["arm_swing_diff"]:
        issues.append(Issue.create("arm_asymmetry", RiskLevel.MEDIUM))

    return issues


# ═══════════════════════════════════════════════════════════════════════════════
# SQUAT
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_squat(keypoints: KeypointSet) -> List[Issue]:
    """Knee valgus while the hips are down near knee height."""
    issues: List[Issue] = []
    if not _has_evidence(keypoints, AnalysisMode.SQUAT):
        return issues

    t = RULE_THRESHOLDS[AnalysisMode.SQUAT]

    hip_left = keypoints[JointType.LEFT_HIP.value]
    hip_right = keypoints[JointType.RIGHT_HIP.value]
    knee_left = keypoints[JointType.LEFT_KNEE.value]
    knee_right = keypoints[JointType.RIGHT_KNEE.value]
    ankle_left = keypoints[JointType.LEFT_ANKLE.value]
    ankle_right = keypoints[JointType.RIGHT_ANKLE.value]

    # Y grows downward: squatting moves the hips down toward the knees
    is_squatting = midpoint(hip_left, hip_right).y > midpoint(knee_left, knee_right).y - t["squat_depth_gap"]
    if not is_squatting:
        return issues

    knee_separation = abs(knee_left.x - knee_right.x)
    ankle_separation = abs(ankle_left.x - ankle_right.x)

    if knee_separation < ankle_separation * t["knee_to_ankle_ratio"]:
        issues.append(Issue.create("knee_valgus", RiskLevel.HIGH))

    return issues


# ═══════════════════════════════════════════════════════════════════════════════
# OVERHEAD REACH
# ═══════════════════════════════════════════════════════════════════════════════

def analyze_overhead(keypoints: KeypointSet) -> List[Issue]:
    """Shoulder shrug compensation with both arms raised."""
    issues: List[Issue] = []
    if not _has_evidence(keypoints, AnalysisMode.OVERHEAD):
        return issues

    t = RULE_THRESHOLDS[AnalysisMode.OVERHEAD]

    ear_left = keypoints[JointType.LEFT_EAR.value]
    ear_right = keypoints[JointType.RIGHT_EAR.value]
    shoulder_left = keypoints[JointType.LEFT_SHOULDER.value]
    shoulder_right = keypoints[JointType.RIGHT_SHOULDER.value]
    wrist_left = keypoints[JointType.LEFT_WRIST.value]
    wrist_right = keypoints[JointType.RIGHT_WRIST.value]

    arms_raised = wrist_left.y < shoulder_left.y and wrist_right.y < shoulder_right.y
    if not arms_raised:
        return issues

    head_width = abs(ear_left.x - ear_right.x)
    limit = head_width * t["trap_to_head_ratio"]
    left_trap = abs(shoulder_left.y - ear_left.y)
    right_trap = abs(shoulder_right.y - ear_right.y)

    if left_trap < limit or right_trap < limit:
        issues.append(Issue.create("shoulder_shrug", RiskLevel.MEDIUM))

    return issues


# ═══════════════════════════════════════════════════════════════════════════════
# CLIMBING
# ═══════════════════════════════════════════════════════════════════════════════

def _inward_bias(keypoints: KeypointSet, side: str) -> Optional[float]:
    """
    Horizontal knee offset toward the body midline, per side.

    Assumes a frontal, mirrored view: the left leg is on screen-left, so
    inward is +x for the left knee and -x for the right knee.
    """
    knee_joint, ankle_joint = CLIMBING_SIDES[side]
    if not all_visible(keypoints, (knee_joint, ankle_joint), visibility_floor(AnalysisMode.CLIMBING)):
        return None
    knee = keypoints[knee_joint.value]
    ankle = keypoints[ankle_joint.value]
    return knee.x - ankle.x if side == "left" else ankle.x - knee.x


def analyze_climbing(keypoints: KeypointSet) -> List[Issue]:
    """Knee valgus under load, evaluated for each leg independently."""
    issues: List[Issue] = []
    if not is_complete(keypoints):
        return issues

    t = RULE_THRESHOLDS[AnalysisMode.CLIMBING]

    for side in ("left", "right"):
        bias = _inward_bias(keypoints, side)
        if bias is not None and bias > t["inward_bias"]:
            issues.append(Issue.create(
                f"knee_valgus_{side}",
                _tiered(bias, t["inward_bias_high"]),
            ))

    return issues


# ═══════════════════════════════════════════════════════════════════════════════
# DISPATCH
# ═══════════════════════════════════════════════════════════════════════════════

EVALUATORS: Dict[AnalysisMode, Evaluator] = {
    AnalysisMode.STANDING: analyze_standing,
    AnalysisMode.SINGLE_LEG: analyze_single_leg,
    AnalysisMode.WALKING: analyze_walking,
    AnalysisMode.SQUAT: analyze_squat,
    AnalysisMode.OVERHEAD: analyze_overhead,
    AnalysisMode.CLIMBING: analyze_climbing,
}


def evaluate(mode: Union[AnalysisMode, str], keypoints: Optional[KeypointSet]) -> List[Issue]:
    """
    Run the evaluator for ``mode`` on one frame.

    Raises:
        ValueError: if ``mode`` is not a known analysis mode
    """
    mode = AnalysisMode(mode)
    if keypoints is None:
        return []
    issues = EVALUATORS[mode](keypoints)
    if issues:
        logger.debug(f"{mode.value}: {[issue.id for issue in issues]}")
    return issues
