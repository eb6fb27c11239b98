"""
POSTURA Posture Service - Analysis Session

Owns one video analysis: the selected mode, the video source and pose
detector, the frame loop, and the accumulated issue state. Manages
playback, seeking and jump-to-occurrence navigation.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from core.config import settings

from .accumulator import SessionState, accumulate_issues
from .issues import AnalysisMode, Issue, RiskLevel, max_risk
from .keypoints import KeypointSet, is_complete, keypoints_to_dicts
from .navigator import OccurrenceSegment, build_timeline, next_occurrence
from .pose_detector import PoseDetector
from .risk_rules import evaluate

logger = logging.getLogger(__name__)


class PlaybackState(Enum):
    """Playback states of the analysed video."""
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass
class AnalysisReport:
    """Summary of the issues found in a session."""
    overall_risk: RiskLevel
    issues: List[Issue]
    summary: str
    pose_name: str
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_risk": self.overall_risk.value,
            "issues": [issue.to_dict() for issue in self.issues],
            "summary": self.summary,
            "pose_name": self.pose_name,
            "date": self.date.isoformat(),
        }


class AnalysisSession:
    """
    Single-consumer analysis session.

    At most one detector call is in flight: the frame loop and seek
    previews share a per-session detection lock. Every reset (mode switch, new
    video, restart) bumps ``generation``; detector results that come back
    under an older generation are dropped.

    The video source must provide ``read()``, ``seek(seconds)``,
    ``duration`` and ``release()``; the detector an awaitable
    ``detect(frame)`` returning a keypoint set or None.
    """

    def __init__(
        self,
        session_id: str,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDING,
        detector: Optional[Any] = None,
        source: Optional[Any] = None,
        duration: Optional[float] = None,
    ):
        self.session_id = session_id
        self.mode = AnalysisMode(mode)
        self.detector = detector
        self.source = source
        self._duration = duration

        self.state = SessionState()
        self.playback = PlaybackState.IDLE
        self.current_time = 0.0
        self.generation = 0

        self.latest_keypoints: Optional[KeypointSet] = None
        self.frames_processed = 0
        self.stale_results_dropped = 0
        self.last_error: Optional[str] = None

        self._task: Optional[asyncio.Task] = None
        self._subscribers: List[asyncio.Queue] = []
        self._detect_lock = asyncio.Lock()
        self._seek_serial = 0

    # ═══════════════════════════════════════════════════════════════════════════
    # PROPERTIES
    # ═══════════════════════════════════════════════════════════════════════════

    @property
    def playing(self) -> bool:
        return self.playback == PlaybackState.PLAYING

    @property
    def duration(self) -> Optional[float]:
        """Video length in seconds, None when unknown."""
        if self.source is not None:
            return self.source.duration
        return self._duration

    # ═══════════════════════════════════════════════════════════════════════════
    # STATE RESETS
    # ═══════════════════════════════════════════════════════════════════════════

    def _reset(self, reason: str):
        self.generation += 1
        self.state.reset()
        self.latest_keypoints = None
        logger.info(f"Session {self.session_id} reset ({reason}), generation {self.generation}")

    def set_mode(self, mode: Union[AnalysisMode, str]):
        """Switch the analysis mode; clears all accumulated findings."""
        mode = AnalysisMode(mode)
        if mode == self.mode:
            return
        self.mode = mode
        self._reset(f"mode -> {mode.value}")

    async def load_video(self, source: Any, detector: Optional[Any] = None):
        """Replace the analysed video; stops playback and clears findings."""
        await self.pause()
        if self.source is not None:
            self.source.release()
        self.source = source
        if detector is not None:
            self.detector = detector
        self.current_time = 0.0
        self.playback = PlaybackState.IDLE
        self._reset(f"video -> {getattr(source, 'name', 'stream')}")

    async def restart(self):
        """Rewind to the start and clear findings."""
        await self.pause()
        if self.source is not None:
            self.source.seek(0.0)
        self.current_time = 0.0
        self.playback = PlaybackState.IDLE
        self._reset("restart")

    # ═══════════════════════════════════════════════════════════════════════════
    # PLAYBACK / FRAME LOOP
    # ═══════════════════════════════════════════════════════════════════════════

    def play(self):
        """Start the frame loop. No-op if already playing."""
        if self.source is None or self.detector is None:
            raise ValueError("No video loaded for this session")
        if self.playing:
            return
        if self.playback == PlaybackState.ENDED:
            self.source.seek(0.0)
            self.current_time = 0.0
        self.playback = PlaybackState.PLAYING
        self.last_error = None
        self._task = asyncio.create_task(self._run_loop(), name=f"analysis-{self.session_id}")

    async def pause(self):
        """Stop the frame loop, cancelling any pending frame."""
        if self.playing:
            self.playback = PlaybackState.PAUSED
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def wait_until_stopped(self):
        """Await the running frame loop, if any."""
        if self._task is not None:
            await self._task

    async def _run_loop(self):
        while self.playing:
            try:
                item = self.source.read()
                if item is None:
                    self.playback = PlaybackState.ENDED
                    logger.info(f"Session {self.session_id} reached end of video at {self.current_time:.2f}s")
                    self._notify()
                    break

                frame, timestamp = item
                await self._process_frame(frame, timestamp, record=True)
            except Exception as e:
                # Paused, so play() resumes from the next frame
                self.playback = PlaybackState.PAUSED
                self.last_error = str(e)
                logger.error(f"❌ Session {self.session_id} frame loop stopped at {self.current_time:.2f}s: {e}")
                self._notify()
                break

            await asyncio.sleep(settings.FRAME_INTERVAL_SECONDS)

    async def _process_frame(self, frame: Any, timestamp: float, record: bool) -> Optional[List[Issue]]:
        generation = self.generation
        seek_serial = self._seek_serial

        async with self._detect_lock:
            keypoints = await self.detector.detect(frame)

        if generation != self.generation or seek_serial != self._seek_serial:
            self.stale_results_dropped += 1
            logger.debug(f"Dropped stale detection from generation {generation}")
            return None
        if not record and self.playing:
            # Playback resumed while the preview was in flight
            self.stale_results_dropped += 1
            return None

        self.current_time = timestamp
        return self.process_keypoints(keypoints, timestamp, playing=record and self.playing)

    def process_keypoints(
        self,
        keypoints: Optional[KeypointSet],
        timestamp: float,
        playing: bool,
    ) -> List[Issue]:
        """
        Evaluate one frame's keypoints with the current mode and accumulate.

        A missing or partial keypoint set skips evaluation.
        """
        self.latest_keypoints = keypoints
        self.frames_processed += 1

        issues: List[Issue] = []
        if is_complete(keypoints):
            issues = evaluate(self.mode, keypoints)
            accumulate_issues(self.state, issues, playing=playing, current_time=timestamp)

        self._notify()
        return issues

    def submit_keypoints(
        self,
        keypoints: Optional[KeypointSet],
        timestamp: float,
        playing: bool = True,
        generation: Optional[int] = None,
    ) -> Optional[List[Issue]]:
        """
        Accept a keypoint set detected by the client.

        Returns:
            The frame's issues, or None if ``generation`` is stale
        """
        if generation is not None and generation != self.generation:
            self.stale_results_dropped += 1
            logger.debug(f"Dropped stale client frame from generation {generation}")
            return None
        self.current_time = timestamp
        return self.process_keypoints(keypoints, timestamp, playing=playing)

    # ═══════════════════════════════════════════════════════════════════════════
    # SEEK / NAVIGATION
    # ═══════════════════════════════════════════════════════════════════════════

    def _clamp(self, seconds: float) -> float:
        seconds = max(seconds, 0.0)
        duration = self.duration
        if duration is not None:
            seconds = min(seconds, duration)
        return seconds

    async def seek(self, seconds: float) -> float:
        """
        Move playback to ``seconds`` (clamped to [0, duration]).

        When paused, one preview frame is evaluated to refresh the skeleton
        and active issues. The preview is never recorded in history. A later
        seek supersedes any detection still in flight.

        Seeking back into the video after it ended leaves it paused, so
        play resumes from the target instead of rewinding.
        """
        target = self._clamp(seconds)
        self._seek_serial += 1
        if self.source is not None:
            self.source.seek(target)
        self.current_time = target

        duration = self.duration
        if self.playback == PlaybackState.ENDED and (duration is None or target < duration):
            self.playback = PlaybackState.PAUSED

        if not self.playing and self.source is not None and self.detector is not None:
            item = self.source.read()
            if item is not None:
                frame, _ = item
                self.source.seek(target)
                await self._process_frame(frame, target, record=False)

        return target

    async def navigate(self, issue_id: str) -> Optional[float]:
        """
        Jump to the next recorded occurrence of ``issue_id``.

        Returns:
            Target time in seconds, or None if the issue was never recorded
        """
        target = next_occurrence(self.state, issue_id)
        if target is None:
            return None
        await self.seek(target)
        return target

    def timeline(self) -> Dict[str, List[OccurrenceSegment]]:
        """Occurrence segments for every recorded issue."""
        return build_timeline(self.state.history)

    # ═══════════════════════════════════════════════════════════════════════════
    # UPDATES
    # ═══════════════════════════════════════════════════════════════════════════

    def subscribe(self) -> asyncio.Queue:
        """Queue receiving a snapshot after every processed frame, then None on close."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=8)
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        if queue in self._subscribers:
            self._subscribers.remove(queue)

    def _notify(self):
        if not self._subscribers:
            return
        snapshot = self.to_dict(include_keypoints=True)
        for queue in self._subscribers:
            self._push(queue, snapshot)

    @staticmethod
    def _push(queue: asyncio.Queue, item: Optional[Dict[str, Any]]):
        if queue.full():
            # Slow consumer: keep only the most recent snapshots
            queue.get_nowait()
        queue.put_nowait(item)

    # ═══════════════════════════════════════════════════════════════════════════
    # REPORTING
    # ═══════════════════════════════════════════════════════════════════════════

    def report(self) -> AnalysisReport:
        """Build a report from the active issues."""
        issues = list(self.state.active_issues.values())
        overall = max_risk(issue.risk_level for issue in issues)
        pose_name = self.mode.display_name

        if issues:
            names = ", ".join(issue.name for issue in issues)
            summary = (
                f"{len(issues)} risk pattern(s) found during {pose_name}: {names}. "
                f"Highest risk: {overall.value}."
            )
        else:
            summary = f"No posture risks detected during {pose_name}."

        return AnalysisReport(
            overall_risk=overall,
            issues=issues,
            summary=summary,
            pose_name=pose_name,
        )

    def to_dict(self, include_keypoints: bool = False) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        data = {
            "session_id": self.session_id,
            "mode": self.mode.value,
            "playback": self.playback.value,
            "current_time": round(self.current_time, 3),
            "duration": self.duration,
            "generation": self.generation,
            "video": getattr(self.source, "name", None),
            "frames_processed": self.frames_processed,
            "stale_results_dropped": self.stale_results_dropped,
            "last_error": self.last_error,
            **self.state.to_dict(),
        }
        if include_keypoints:
            data["keypoints"] = keypoints_to_dicts(self.latest_keypoints) if self.latest_keypoints else None
        return data

    async def close(self):
        """
        Stop playback and release the video and detector.

        Subscribers receive None as the final item.
        """
        await self.pause()
        subscribers, self._subscribers = self._subscribers, []
        for queue in subscribers:
            self._push(queue, None)
        if self.source is not None:
            self.source.release()
            self.source = None
        if self.detector is not None and hasattr(self.detector, "close"):
            self.detector.close()


class AnalysisSessionHandler:
    """
    Manages analysis sessions by id.

    Each session gets its own detector, since MediaPipe tracking state is
    per video stream.
    """

    def __init__(self, detector_factory: Callable[[], Any] = PoseDetector):
        self.detector_factory = detector_factory
        self.sessions: Dict[str, AnalysisSession] = {}

    def create_session(
        self,
        mode: Union[AnalysisMode, str] = AnalysisMode.STANDING,
        duration: Optional[float] = None,
    ) -> AnalysisSession:
        """Create a new session with no video loaded."""
        session_id = str(uuid.uuid4())[:8]
        session = AnalysisSession(session_id=session_id, mode=mode, duration=duration)
        self.sessions[session_id] = session
        logger.info(f"Created session {session_id} ({session.mode.value})")
        return session

    def get_session(self, session_id: str) -> Optional[AnalysisSession]:
        """Get session by ID."""
        return self.sessions.get(session_id)

    async def load_video(self, session_id: str, source: Any) -> Optional[AnalysisSession]:
        """Attach a video source to a session, creating its detector on first use."""
        session = self.sessions.get(session_id)
        if session is None:
            return None
        detector = None if session.detector is not None else self.detector_factory()
        await session.load_video(source, detector=detector)
        return session

    async def close_session(self, session_id: str) -> bool:
        """Stop and remove a session."""
        session = self.sessions.pop(session_id, None)
        if session is None:
            return False
        await session.close()
        logger.info(f"Closed session {session_id}")
        return True

    async def close_all(self):
        for session_id in list(self.sessions):
            await self.close_session(session_id)


# ═══════════════════════════════════════════════════════════════════════════════
# MODULE-LEVEL SINGLETON
# ═══════════════════════════════════════════════════════════════════════════════

_handler_instance: Optional[AnalysisSessionHandler] = None


def get_session_handler() -> AnalysisSessionHandler:
    """Get or create the global session handler instance."""
    global _handler_instance
    if _handler_instance is None:
        _handler_instance = AnalysisSessionHandler()
    return _handler_instance
