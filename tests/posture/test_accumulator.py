"""Issue accumulation, occurrence segments and navigation."""

import pytest

from posture_service.models import (
    HistoryEntry,
    Issue,
    RiskLevel,
    SessionState,
    accumulate_issues,
    build_segments,
    build_timeline,
    next_occurrence,
)


def medium(issue_id="pelvic_tilt"):
    return Issue.create(issue_id, RiskLevel.MEDIUM)


def high(issue_id="pelvic_tilt"):
    return Issue.create(issue_id, RiskLevel.HIGH)


def record(state, times, issue_factory=medium):
    for t in times:
        accumulate_issues(state, [issue_factory()], playing=True, current_time=t)


# ═══════════════════════════════════════════════════════════════════════════════
# ACCUMULATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_same_frame_twice_adds_once():
    state = SessionState()
    issues = [medium("pelvic_tilt"), medium("head_deviation")]

    added = accumulate_issues(state, issues, playing=False, current_time=1.0)
    assert [i.id for i in added] == ["pelvic_tilt", "head_deviation"]

    assert accumulate_issues(state, issues, playing=False, current_time=1.0) == []
    assert list(state.active_issues) == ["pelvic_tilt", "head_deviation"]


def test_first_seen_risk_level_is_never_escalated():
    state = SessionState()
    accumulate_issues(state, [medium()], playing=True, current_time=0.1)
    accumulate_issues(state, [high()], playing=True, current_time=0.2)

    assert state.active_issues["pelvic_tilt"].risk_level == RiskLevel.MEDIUM
    # History still keeps what each frame actually saw
    assert state.history[-1].issues[0].risk_level == RiskLevel.HIGH


def test_history_only_while_playing():
    state = SessionState()
    accumulate_issues(state, [medium()], playing=False, current_time=0.5)
    assert state.history == []
    assert "pelvic_tilt" in state.active_issues

    accumulate_issues(state, [medium()], playing=True, current_time=0.6)
    assert [entry.time for entry in state.history] == [0.6]


def test_frames_without_issues_are_not_recorded():
    state = SessionState()
    accumulate_issues(state, [], playing=True, current_time=0.5)
    assert state.history == []


def test_history_times_strictly_increase():
    state = SessionState()
    record(state, [0.1, 0.2, 0.2, 0.15, 0.3])
    assert [entry.time for entry in state.history] == [0.1, 0.2, 0.3]


def test_reset_clears_everything_together():
    state = SessionState()
    record(state, [0.1, 1.0])
    next_occurrence(state, "pelvic_tilt")
    assert not state.is_empty

    state.reset()

    assert state.is_empty
    assert state.active_issue_id is None
    assert state.active_segment_start is None


# ═══════════════════════════════════════════════════════════════════════════════
# SEGMENTS
# ═══════════════════════════════════════════════════════════════════════════════

def test_segments_split_on_gaps():
    state = SessionState()
    record(state, [0.1, 0.3, 0.9, 1.0, 2.5])

    segments = build_segments(state.history, "pelvic_tilt", gap=0.5)

    assert [s.start for s in segments] == [0.1, 0.9, 2.5]
    assert [s.end for s in segments] == [0.3, 1.0, 2.5]


def test_detection_exactly_at_gap_extends_segment():
    history = [
        HistoryEntry(time=1.0, issues=(medium(),)),
        HistoryEntry(time=1.5, issues=(medium(),)),
    ]
    assert len(build_segments(history, "pelvic_tilt", gap=0.5)) == 1


def test_segment_tracks_highest_risk():
    history = [
        HistoryEntry(time=0.1, issues=(medium(),)),
        HistoryEntry(time=0.2, issues=(high(),)),
        HistoryEntry(time=0.3, issues=(medium(),)),
    ]
    (segment,) = build_segments(history, "pelvic_tilt", gap=0.5)
    assert segment.risk_level == RiskLevel.HIGH
    assert segment.duration == pytest.approx(0.2)


def test_segments_ignore_other_issue_ids():
    history = [
        HistoryEntry(time=0.1, issues=(medium("head_deviation"),)),
        HistoryEntry(time=0.3, issues=(medium("pelvic_tilt"),)),
        HistoryEntry(time=2.0, issues=(medium("head_deviation"),)),
    ]
    timeline = build_timeline(history, gap=0.5)

    assert list(timeline) == ["head_deviation", "pelvic_tilt"]
    assert [s.start for s in timeline["head_deviation"]] == [0.1, 2.0]
    assert [s.start for s in timeline["pelvic_tilt"]] == [0.3]


# ═══════════════════════════════════════════════════════════════════════════════
# NAVIGATION
# ═══════════════════════════════════════════════════════════════════════════════

def test_navigation_cycles_through_segments():
    state = SessionState()
    record(state, [0.1, 0.3, 0.9, 1.0, 2.5])

    targets = [next_occurrence(state, "pelvic_tilt", gap=0.5) for _ in range(4)]

    assert targets == [0.1, 0.9, 2.5, 0.1]
    assert state.visit_counts["pelvic_tilt"] == 4
    assert state.active_issue_id == "pelvic_tilt"
    assert state.active_segment_start == 0.1


def test_navigation_to_unrecorded_issue():
    state = SessionState()
    record(state, [0.1])

    assert next_occurrence(state, "head_deviation") is None
    assert "head_deviation" not in state.visit_counts
    assert state.active_issue_id is None


def test_active_but_unrecorded_issue_has_no_occurrences():
    state = SessionState()
    accumulate_issues(state, [medium()], playing=False, current_time=3.0)

    assert next_occurrence(state, "pelvic_tilt") is None
