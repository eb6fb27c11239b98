"""
POSTURA Posture Service - Occurrence Navigator

Groups an issue's recorded detections into contiguous time segments and
cycles through them on repeated navigation requests.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from core.config import settings

from .accumulator import HistoryEntry, SessionState
from .issues import RiskLevel, max_risk

logger = logging.getLogger(__name__)


@dataclass
class OccurrenceSegment:
    """A contiguous window in which one issue was repeatedly detected."""
    issue_id: str
    start: float
    end: float
    risk_level: RiskLevel

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issue_id": self.issue_id,
            "start": self.start,
            "end": self.end,
            "risk_level": self.risk_level.value,
        }


def build_segments(
    history: Sequence[HistoryEntry],
    issue_id: str,
    gap: Optional[float] = None,
) -> List[OccurrenceSegment]:
    """
    Cluster the history entries containing ``issue_id`` into segments.

    A detection more than ``gap`` seconds after the previous detection of
    the same id opens a new segment; otherwise it extends the open one.
    """
    gap = settings.SEGMENT_GAP_SECONDS if gap is None else gap
    segments: List[OccurrenceSegment] = []

    for entry in history:
        levels = [issue.risk_level for issue in entry.issues if issue.id == issue_id]
        if not levels:
            continue
        level = max_risk(levels)

        current = segments[-1] if segments else None
        if current is not None and entry.time - current.end <= gap:
            current.end = entry.time
            current.risk_level = max_risk([current.risk_level, level])
        else:
            segments.append(OccurrenceSegment(
                issue_id=issue_id,
                start=entry.time,
                end=entry.time,
                risk_level=level,
            ))

    return segments


def build_timeline(
    history: Sequence[HistoryEntry],
    gap: Optional[float] = None,
) -> Dict[str, List[OccurrenceSegment]]:
    """Segments for every issue id seen in ``history``, in first-seen order."""
    issue_ids: List[str] = []
    for entry in history:
        for issue in entry.issues:
            if issue.id not in issue_ids:
                issue_ids.append(issue.id)
    return {issue_id: build_segments(history, issue_id, gap) for issue_id in issue_ids}


def next_occurrence(
    state: SessionState,
    issue_id: str,
    gap: Optional[float] = None,
) -> Optional[float]:
    """
    Pick the segment start to jump to for ``issue_id``.

    Successive calls cycle through the segments in chronological order.
    Updates the visit counter and the navigation highlight.

    Returns:
        Target time in seconds, or None if the id was never recorded
    """
    segments = build_segments(state.history, issue_id, gap)
    if not segments:
        return None

    count = state.visit_counts.get(issue_id, 0)
    target = segments[count % len(segments)]

    state.visit_counts[issue_id] = count + 1
    state.active_issue_id = issue_id
    state.active_segment_start = target.start

    logger.debug(
        f"Navigate {issue_id}: segment {count % len(segments) + 1}/{len(segments)} at {target.start:.2f}s"
    )
    return target.start
