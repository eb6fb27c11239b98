"""
POSTURA Posture Service - Issue Accumulator

Session-scoped state merging per-frame detections into a cumulative set of
active issues and a time-stamped history.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .issues import Issue

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """Issues detected on one frame recorded during playback."""
    time: float
    issues: Tuple[Issue, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "time": self.time,
            "issues": [issue.id for issue in self.issues],
        }


@dataclass
class SessionState:
    """
    Accumulated findings for one analysis session.

    Active issues are cumulative: an id stays once seen until ``reset``.
    History is append-only and strictly increasing in time.
    """
    active_issues: Dict[str, Issue] = field(default_factory=dict)
    history: List[HistoryEntry] = field(default_factory=list)
    visit_counts: Dict[str, int] = field(default_factory=dict)

    # Navigation highlight
    active_issue_id: Optional[str] = None
    active_segment_start: Optional[float] = None

    def reset(self):
        """Clear all accumulated state together."""
        self.active_issues = {}
        self.history = []
        self.visit_counts = {}
        self.active_issue_id = None
        self.active_segment_start = None

    @property
    def is_empty(self) -> bool:
        return not (self.active_issues or self.history or self.visit_counts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "active_issues": [issue.to_dict() for issue in self.active_issues.values()],
            "history_length": len(self.history),
            "visit_counts": dict(self.visit_counts),
            "active_issue_id": self.active_issue_id,
            "active_segment_start": self.active_segment_start,
        }


def accumulate_issues(
    state: SessionState,
    issues: Sequence[Issue],
    *,
    playing: bool,
    current_time: float,
) -> List[Issue]:
    """
    Merge one frame's issues into the session.

    The first detected instance of an id is kept; later detections of the
    same id never replace it, even at a higher risk level.

    Args:
        state: Session state to update in place
        issues: Issues detected on this frame
        playing: Whether the frame comes from forward playback
        current_time: Playback time of the frame in seconds

    Returns:
        Issues whose id was not active before this call
    """
    added: List[Issue] = []
    for issue in issues:
        if issue.id not in state.active_issues:
            state.active_issues[issue.id] = issue
            added.append(issue)

    if added:
        logger.info(f"New issues at {current_time:.2f}s: {[issue.id for issue in added]}")

    if playing and issues:
        last = state.history[-1].time if state.history else None
        if last is not None and current_time <= last:
            logger.debug(f"Skipping out-of-order frame at {current_time:.3f}s (last {last:.3f}s)")
        else:
            state.history.append(HistoryEntry(time=current_time, issues=tuple(issues)))

    return added
