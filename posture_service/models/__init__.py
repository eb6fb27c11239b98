"""
POSTURA Posture Service Models

Rule-based posture risk analysis over MediaPipe pose keypoints.
"""

from .keypoints import (
    KEYPOINT_COUNT,
    JointType,
    Keypoint,
    KeypointSet,
    is_complete,
    keypoints_from_dicts,
    keypoints_to_dicts
)

from .issues import (
    AnalysisMode,
    RiskLevel,
    Issue,
    IssueDefinition,
    ISSUE_CATALOG,
    max_risk
)

from .risk_rules import (
    EVALUATORS,
    evaluate,
    analyze_standing,
    analyze_single_leg,
    analyze_walking,
    analyze_squat,
    analyze_overhead,
    analyze_climbing
)

from .accumulator import (
    SessionState,
    HistoryEntry,
    accumulate_issues
)

from .navigator import (
    OccurrenceSegment,
    build_segments,
    build_timeline,
    next_occurrence
)

from .pose_detector import PoseDetector

from .video_source import VideoFileSource, VideoLoadError

from .profile import (
    UserProfile,
    PainProfile,
    PainRegion,
    BodyRegion,
    PainLevel,
    TrainingLevel,
    WeightCategory,
    DominantSide
)

from .analysis_session import (
    AnalysisSession,
    AnalysisSessionHandler,
    AnalysisReport,
    PlaybackState,
    get_session_handler
)

__all__ = [
    # Keypoints
    "KEYPOINT_COUNT",
    "JointType",
    "Keypoint",
    "KeypointSet",
    "is_complete",
    "keypoints_from_dicts",
    "keypoints_to_dicts",
    # Issues
    "AnalysisMode",
    "RiskLevel",
    "Issue",
    "IssueDefinition",
    "ISSUE_CATALOG",
    "max_risk",
    # Rules
    "EVALUATORS",
    "evaluate",
    "analyze_standing",
    "analyze_single_leg",
    "analyze_walking",
    "analyze_squat",
    "analyze_overhead",
    "analyze_climbing",
    # Accumulation / navigation
    "SessionState",
    "HistoryEntry",
    "accumulate_issues",
    "OccurrenceSegment",
    "build_segments",
    "build_timeline",
    "next_occurrence",
    # External adapters
    "PoseDetector",
    "VideoFileSource",
    "VideoLoadError",
    # Profile
    "UserProfile",
    "PainProfile",
    "PainRegion",
    "BodyRegion",
    "PainLevel",
    "TrainingLevel",
    "WeightCategory",
    "DominantSide",
    # Session
    "AnalysisSession",
    "AnalysisSessionHandler",
    "AnalysisReport",
    "PlaybackState",
    "get_session_handler",
]
