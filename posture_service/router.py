"""
POSTURA Posture Service Router

Endpoints for posture risk analysis sessions: video upload, playback
control, seeking, jump-to-occurrence navigation, timeline and report.
Clients that run pose detection themselves can submit keypoints directly.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from shared.storage import get_profile_store, get_storage
from shared.utils import handle_exceptions, success_response

from .models import (
    AnalysisMode,
    AnalysisSession,
    ISSUE_CATALOG,
    UserProfile,
    VideoFileSource,
    VideoLoadError,
    evaluate,
    get_session_handler,
    keypoints_from_dicts,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# ============= Pydantic Models =============

class KeypointModel(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class EvaluateRequest(BaseModel):
    mode: str
    keypoints: List[KeypointModel]


class CreateSessionRequest(BaseModel):
    mode: str = AnalysisMode.STANDING.value
    duration: Optional[float] = Field(default=None, ge=0.0)


class ModeRequest(BaseModel):
    mode: str


class SeekRequest(BaseModel):
    time: float


class FrameRequest(BaseModel):
    keypoints: Optional[List[KeypointModel]] = None
    time: float = Field(ge=0.0)
    playing: bool = True
    generation: Optional[int] = None


# ============= Helpers =============

def _require_session(session_id: str) -> AnalysisSession:
    session = get_session_handler().get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return session


def _to_keypoints(models: Optional[List[KeypointModel]]):
    if models is None:
        return None
    return keypoints_from_dicts(model.model_dump() for model in models)


# ============= Catalog Endpoints =============

@router.get("/modes")
async def list_modes():
    """List supported analysis modes."""
    return {
        "modes": [{"id": mode.value, "name": mode.display_name} for mode in AnalysisMode],
        "total": len(AnalysisMode),
    }


@router.get("/issues")
async def list_issue_definitions():
    """List every issue the rule evaluators can report."""
    return {
        "issues": [
            {
                "id": definition.id,
                "name": definition.name,
                "description": definition.description,
                "suggestion": definition.suggestion,
                "related_joints": sorted(definition.related_joints),
                "risk_levels": sorted(level.value for level in definition.allowed_levels),
            }
            for definition in ISSUE_CATALOG.values()
        ]
    }


@router.post("/evaluate")
@handle_exceptions
async def evaluate_keypoints(request: EvaluateRequest):
    """Evaluate a single keypoint set without a session."""
    issues = evaluate(request.mode, _to_keypoints(request.keypoints))
    return {
        "mode": AnalysisMode(request.mode).value,
        "issues": [issue.to_dict() for issue in issues],
    }


# ============= Session Endpoints =============

@router.post("/sessions")
@handle_exceptions
async def create_session(request: CreateSessionRequest):
    """Create an analysis session. Load a video or submit frames next."""
    session = get_session_handler().create_session(mode=request.mode, duration=request.duration)
    return {
        "status": "created",
        **session.to_dict(),
        "websocket_url": f"/api/posture/ws/session/{session.session_id}",
    }


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, include_keypoints: bool = False):
    """Current session snapshot."""
    return _require_session(session_id).to_dict(include_keypoints=include_keypoints)


@router.delete("/sessions/{session_id}")
async def close_session(session_id: str):
    """Stop and remove a session."""
    if not await get_session_handler().close_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session '{session_id}' not found")
    return {"status": "closed", "session_id": session_id}


@router.put("/sessions/{session_id}/mode")
@handle_exceptions
async def set_mode(session_id: str, request: ModeRequest):
    """Switch analysis mode. Clears all accumulated findings."""
    session = _require_session(session_id)
    session.set_mode(request.mode)
    return session.to_dict()


@router.post("/sessions/{session_id}/video")
@handle_exceptions
async def upload_video(session_id: str, video: UploadFile = File(...)):
    """Upload a video and load it into the session."""
    _require_session(session_id)

    content = await video.read()
    stored = get_storage().save_video(content, video.filename or "upload.mp4")

    try:
        source = await asyncio.to_thread(VideoFileSource, stored.path, delete_on_release=True)
    except VideoLoadError as e:
        get_storage().delete_file(stored.path)
        raise HTTPException(status_code=400, detail=str(e))

    session = await get_session_handler().load_video(session_id, source)
    return {
        "status": "loaded",
        "file_id": stored.file_id,
        "fps": source.fps,
        "width": source.width,
        "height": source.height,
        **session.to_dict(),
    }


@router.post("/sessions/{session_id}/play")
@handle_exceptions
async def play(session_id: str):
    """Start frame-by-frame analysis of the loaded video."""
    session = _require_session(session_id)
    session.play()
    return session.to_dict()


@router.post("/sessions/{session_id}/pause")
async def pause(session_id: str):
    """Pause analysis."""
    session = _require_session(session_id)
    await session.pause()
    return session.to_dict()


@router.post("/sessions/{session_id}/restart")
async def restart(session_id: str):
    """Rewind to the start and clear findings."""
    session = _require_session(session_id)
    await session.restart()
    return session.to_dict()


@router.post("/sessions/{session_id}/seek")
async def seek(session_id: str, request: SeekRequest):
    """Seek to a time in seconds; refreshes the skeleton when paused."""
    session = _require_session(session_id)
    target = await session.seek(request.time)
    return {"target_time": target, **session.to_dict(include_keypoints=True)}


@router.post("/sessions/{session_id}/navigate/{issue_id}")
async def navigate(session_id: str, issue_id: str):
    """Jump to the next recorded occurrence of an issue, cycling."""
    session = _require_session(session_id)
    target = await session.navigate(issue_id)
    if target is None:
        raise HTTPException(status_code=404, detail=f"No recorded occurrences of '{issue_id}'")
    return {
        "issue_id": issue_id,
        "target_time": target,
        "visit_count": session.state.visit_counts.get(issue_id, 0),
    }


@router.post("/sessions/{session_id}/frames")
@handle_exceptions
async def submit_frame(session_id: str, request: FrameRequest):
    """Submit one frame of client-detected keypoints."""
    session = _require_session(session_id)
    issues = session.submit_keypoints(
        _to_keypoints(request.keypoints),
        request.time,
        playing=request.playing,
        generation=request.generation,
    )
    if issues is None:
        return {"status": "discarded", "reason": "stale generation", "generation": session.generation}
    return {
        "status": "processed",
        "issues": [issue.to_dict() for issue in issues],
        **session.to_dict(),
    }


@router.get("/sessions/{session_id}/timeline")
async def get_timeline(session_id: str):
    """Occurrence segments per issue for drawing a risk timeline."""
    session = _require_session(session_id)
    return {
        "session_id": session_id,
        "duration": session.duration,
        "active_issue_id": session.state.active_issue_id,
        "active_segment_start": session.state.active_segment_start,
        "history": [entry.to_dict() for entry in session.state.history],
        "segments": {
            issue_id: [segment.to_dict() for segment in segments]
            for issue_id, segments in session.timeline().items()
        },
    }


@router.get("/sessions/{session_id}/report")
async def get_report(session_id: str):
    """Summary report of the session's findings."""
    return _require_session(session_id).report().to_dict()


# ============= Profile Endpoints =============

@router.get("/profile")
async def get_profile():
    """Get the stored user profile."""
    profile = get_profile_store().load()
    if profile is None:
        raise HTTPException(status_code=404, detail="No profile stored")
    return profile.model_dump(mode="json")


@router.put("/profile")
async def save_profile(profile: UserProfile):
    """Replace the stored user profile."""
    get_profile_store().save(profile)
    return success_response(profile.model_dump(mode="json"), message="Profile saved")


@router.delete("/profile")
async def delete_profile():
    """Remove the stored user profile."""
    if not get_profile_store().clear():
        raise HTTPException(status_code=404, detail="No profile stored")
    return success_response(message="Profile cleared")


# ============= WebSocket Endpoints =============

@router.websocket("/ws/session/{session_id}")
async def session_stream(websocket: WebSocket, session_id: str):
    """
    Live session updates.

    Sends a snapshot (issues, keypoints for rendering, playback time) after
    every processed frame, and SESSION_CLOSED before closing when the
    session is deleted.
    """
    await websocket.accept()

    session = get_session_handler().get_session(session_id)
    if session is None:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    updates = session.subscribe()
    try:
        await websocket.send_json({"type": "CONNECTED", **session.to_dict()})
        while True:
            snapshot: Optional[Dict[str, Any]] = await updates.get()
            if snapshot is None:
                await websocket.send_json({"type": "SESSION_CLOSED", "session_id": session_id})
                await websocket.close()
                break
            await websocket.send_json({"type": "FRAME_RESULT", **snapshot})
    except WebSocketDisconnect:
        logger.info(f"Session {session_id} stream disconnected")
    finally:
        session.unsubscribe(updates)
