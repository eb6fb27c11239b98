"""Per-mode rule evaluators and issue validation."""

import pytest

from posture_service.models import (
    AnalysisMode,
    Issue,
    ISSUE_CATALOG,
    JointType,
    RiskLevel,
    analyze_climbing,
    analyze_overhead,
    analyze_single_leg,
    analyze_squat,
    analyze_standing,
    analyze_walking,
    evaluate,
)

from tests.factories import make_pose, squat_pose


def ids(issues):
    return [issue.id for issue in issues]


# ═══════════════════════════════════════════════════════════════════════════════
# COMMON PROPERTIES
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("mode", list(AnalysisMode))
def test_partial_keypoint_set_yields_nothing(mode):
    pose = squat_pose() if mode == AnalysisMode.SQUAT else make_pose({
        JointType.RIGHT_SHOULDER: (0.60, 0.30),
    })
    assert evaluate(mode, pose[:32]) == []
    assert evaluate(mode, []) == []
    assert evaluate(mode, None) == []


@pytest.mark.parametrize("mode", list(AnalysisMode))
def test_neutral_pose_is_clean(mode, neutral_pose):
    assert evaluate(mode, neutral_pose) == []


@pytest.mark.parametrize("mode, pose", [
    (AnalysisMode.STANDING, make_pose({JointType.RIGHT_SHOULDER: (0.60, 0.30)})),
    (AnalysisMode.SQUAT, squat_pose()),
    (AnalysisMode.CLIMBING, make_pose({JointType.LEFT_KNEE: (0.55, 0.70)})),
])
def test_evaluation_is_deterministic(mode, pose):
    first = evaluate(mode, pose)
    assert first
    assert evaluate(mode, pose) == first


def test_unknown_mode_raises(neutral_pose):
    with pytest.raises(ValueError):
        evaluate("handstand", neutral_pose)


def test_mode_accepts_string_value():
    assert ids(evaluate("squat", squat_pose())) == ["knee_valgus"]


# ═══════════════════════════════════════════════════════════════════════════════
# STANDING
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("dy, expected", [
    (0.0098, None),
    (0.0102, RiskLevel.MEDIUM),
    (0.0165, RiskLevel.HIGH),
])
def test_uneven_shoulders_boundaries(dy, expected):
    pose = make_pose({JointType.RIGHT_SHOULDER: (0.60, 0.25 + dy)})
    issues = {issue.id: issue for issue in analyze_standing(pose)}
    if expected is None:
        assert "uneven_shoulders" not in issues
    else:
        assert issues["uneven_shoulders"].risk_level == expected


def test_pelvic_tilt():
    pose = make_pose({JointType.RIGHT_HIP: (0.55, 0.52)})
    issues = analyze_standing(pose)
    assert ids(issues) == ["pelvic_tilt"]
    assert issues[0].risk_level == RiskLevel.HIGH


def test_head_deviation_is_always_medium():
    pose = make_pose({JointType.NOSE: (0.60, 0.10)})
    issues = analyze_standing(pose)
    assert ids(issues) == ["head_deviation"]
    assert issues[0].risk_level == RiskLevel.MEDIUM


def test_standing_requires_stricter_visibility():
    overrides = {JointType.RIGHT_SHOULDER: (0.60, 0.30)}
    low = {JointType.LEFT_ANKLE: 0.6}
    assert analyze_standing(make_pose(overrides, visibility_overrides=low)) == []
    assert analyze_standing(make_pose(overrides, visibility_overrides={JointType.LEFT_ANKLE: 0.66}))


def test_missing_visibility_counts_as_not_visible():
    pose = make_pose(
        {JointType.RIGHT_SHOULDER: (0.60, 0.30)},
        visibility_overrides={JointType.LEFT_HIP: None},
    )
    assert analyze_standing(pose) == []


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLE-LEG
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("right_hip_y, expected", [
    (0.51, None),
    (0.52, RiskLevel.MEDIUM),
    (0.53, RiskLevel.HIGH),
])
def test_trendelenburg_tiers(right_hip_y, expected):
    issues = analyze_single_leg(make_pose({JointType.RIGHT_HIP: (0.55, right_hip_y)}))
    if expected is None:
        assert issues == []
    else:
        assert ids(issues) == ["trendelenburg"]
        assert issues[0].risk_level == expected
        assert issues[0].angle_value == pytest.approx(right_hip_y - 0.50)


def test_single_leg_uses_default_visibility_floor():
    pose = make_pose(
        {JointType.RIGHT_HIP: (0.55, 0.53)},
        visibility_overrides={JointType.LEFT_HIP: 0.6},
    )
    assert ids(analyze_single_leg(pose)) == ["trendelenburg"]


# ═══════════════════════════════════════════════════════════════════════════════
# WALKING
# ═══════════════════════════════════════════════════════════════════════════════

def _walking_pose(left_ankle_x, right_ankle_x):
    return make_pose({
        JointType.LEFT_WRIST: (0.10, 0.45),
        JointType.RIGHT_WRIST: (0.62, 0.45),
        JointType.LEFT_ANKLE: (left_ankle_x, 0.90),
        JointType.RIGHT_ANKLE: (right_ankle_x, 0.90),
    })


def test_arm_asymmetry_mid_stride():
    issues = analyze_walking(_walking_pose(0.35, 0.65))
    assert ids(issues) == ["arm_asymmetry"]
    assert issues[0].risk_level == RiskLevel.MEDIUM


def test_arm_asymmetry_ignored_when_feet_together():
    assert analyze_walking(_walking_pose(0.48, 0.52)) == []


# ═══════════════════════════════════════════════════════════════════════════════
# SQUAT
# ═══════════════════════════════════════════════════════════════════════════════

def test_squat_knee_valgus_is_high():
    issues = analyze_squat(squat_pose(knee_separation=0.2))
    assert ids(issues) == ["knee_valgus"]
    assert issues[0].risk_level == RiskLevel.HIGH


def test_squat_knees_tracking_over_feet():
    assert analyze_squat(squat_pose(knee_separation=0.26)) == []


def test_valgus_not_checked_while_standing_tall():
    pose = make_pose({
        JointType.LEFT_KNEE: (0.40, 0.70),
        JointType.RIGHT_KNEE: (0.60, 0.70),
        JointType.LEFT_ANKLE: (0.35, 0.90),
        JointType.RIGHT_ANKLE: (0.65, 0.90),
    })
    assert analyze_squat(pose) == []


# ═══════════════════════════════════════════════════════════════════════════════
# OVERHEAD
# ═══════════════════════════════════════════════════════════════════════════════

def _overhead_pose(shoulder_y, wrist_y=0.05):
    return make_pose({
        JointType.LEFT_SHOULDER: (0.40, shoulder_y),
        JointType.RIGHT_SHOULDER: (0.60, shoulder_y),
        JointType.LEFT_WRIST: (0.40, wrist_y),
        JointType.RIGHT_WRIST: (0.60, wrist_y),
    })


def test_shoulder_shrug_with_arms_up():
    issues = analyze_overhead(_overhead_pose(shoulder_y=0.15))
    assert ids(issues) == ["shoulder_shrug"]
    assert issues[0].risk_level == RiskLevel.MEDIUM


def test_relaxed_shoulders_with_arms_up():
    assert analyze_overhead(_overhead_pose(shoulder_y=0.25)) == []


def test_shrug_ignored_with_arms_down():
    assert analyze_overhead(_overhead_pose(shoulder_y=0.15, wrist_y=0.45)) == []


# ═══════════════════════════════════════════════════════════════════════════════
# CLIMBING
# ═══════════════════════════════════════════════════════════════════════════════

def test_climbing_sides_are_independent():
    pose = make_pose({
        JointType.LEFT_KNEE: (0.55, 0.70),
        JointType.RIGHT_KNEE: (0.35, 0.70),
    })
    issues = {issue.id: issue.risk_level for issue in analyze_climbing(pose)}
    assert issues == {
        "knee_valgus_left": RiskLevel.MEDIUM,
        "knee_valgus_right": RiskLevel.HIGH,
    }


def test_climbing_skips_occluded_side():
    pose = make_pose(
        {
            JointType.LEFT_KNEE: (0.55, 0.70),
            JointType.RIGHT_KNEE: (0.35, 0.70),
        },
        visibility_overrides={JointType.LEFT_ANKLE: 0.3},
    )
    assert ids(analyze_climbing(pose)) == ["knee_valgus_right"]


def test_climbing_knee_outside_ankle_is_fine():
    pose = make_pose({
        JointType.LEFT_KNEE: (0.40, 0.70),
        JointType.RIGHT_KNEE: (0.60, 0.70),
    })
    assert analyze_climbing(pose) == []


# ═══════════════════════════════════════════════════════════════════════════════
# ISSUE VALIDATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_issue_create_fills_catalog_fields():
    issue = Issue.create("pelvic_tilt", RiskLevel.MEDIUM)
    definition = ISSUE_CATALOG["pelvic_tilt"]
    assert issue.name == definition.name
    assert issue.related_joints == frozenset({JointType.LEFT_HIP.value, JointType.RIGHT_HIP.value})
    assert issue.to_dict()["risk_level"] == "medium"


def test_issue_rejects_unknown_id():
    with pytest.raises(ValueError):
        Issue.create("bad_posture", RiskLevel.MEDIUM)


@pytest.mark.parametrize("issue_id, level", [
    ("knee_valgus", RiskLevel.MEDIUM),
    ("head_deviation", RiskLevel.HIGH),
    ("uneven_shoulders", RiskLevel.LOW),
])
def test_issue_rejects_disallowed_risk_level(issue_id, level):
    with pytest.raises(ValueError):
        Issue.create(issue_id, level)


def test_issue_rejects_out_of_range_joints():
    definition = ISSUE_CATALOG["pelvic_tilt"]
    with pytest.raises(ValueError):
        Issue(
            id=definition.id,
            name=definition.name,
            risk_level=RiskLevel.MEDIUM,
            description=definition.description,
            suggestion=definition.suggestion,
            related_joints=frozenset({23, 40}),
        )


def test_issue_coerces_risk_level_string():
    assert Issue.create("pelvic_tilt", "high").risk_level == RiskLevel.HIGH
