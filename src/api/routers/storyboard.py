"""Storyboard generation routes for the ToonFrame API."""

import asyncio
import logging
import uuid

from api.dependencies import create_session_service, is_backend_configured
from api.schemas import (
    StoryboardGenerateRequest,
    StoryboardSessionResponse,
    StoryboardStatusResponse,
)
from api.websocket_manager import WebSocketManager
from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import Response
from models.storyboard import SessionStatus, StoryboardState
from services.export_service import (
    build_archive,
    build_pdf,
    count_generated_images,
    direction_changes,
)
from services.storyboard_service import StoryboardService
from utils.errors import AnalysisError, AuthorizationError, BackendError, ExportPreconditionError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Storyboard"])

# Storyboard sessions (in-memory)
storyboard_sessions: dict[str, StoryboardService] = {}

# WebSocket manager for storyboard updates
ws_manager = WebSocketManager()

# Keep references to background tasks to prevent garbage collection
_background_tasks: set = set()

FINISHED_STATUSES = (SessionStatus.COMPLETED, SessionStatus.FAILED)


def _state_message(state: StoryboardState) -> dict:
    return {"type": "state", "state": state.to_dict()}


def _get_session(session_id: str) -> StoryboardService:
    if session_id not in storyboard_sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    return storyboard_sessions[session_id]


@router.post(
    "/api/storyboard/generate",
    response_model=StoryboardSessionResponse,
    summary="Start a storyboard session",
    description="Analyzes the script, then generates the character and scene images in the background. Track progress via WebSocket.",
    responses={
        400: {"description": "Empty script or backend not configured"},
        401: {"description": "Backend rejected the API key"},
        502: {"description": "Script analysis failed"},
    },
)
async def start_storyboard_generation(request: StoryboardGenerateRequest) -> dict:
    """Start a storyboard session.

    Args:
        request: Script and scene image size

    Returns:
        Session id and scene counts once analysis has succeeded
    """
    if not request.script or not request.script.strip():
        raise HTTPException(status_code=400, detail="Script is required")

    if not is_backend_configured():
        raise HTTPException(
            status_code=400,
            detail="GEMINI_API_KEY not configured. Set it in your .env file.",
        )

    session_id = str(uuid.uuid4())
    service = create_session_service(session_id)
    storyboard_sessions[session_id] = service

    async def on_state(state: StoryboardState) -> None:
        await ws_manager.broadcast(session_id, _state_message(state))

    service.store.subscribe(on_state)

    try:
        task = await service.start(request.script.strip(), request.image_size, session_id=session_id)
    except AuthorizationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except AnalysisError as e:
        logger.error(f"Storyboard analysis failed for session {session_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    except BackendError as e:
        logger.error(f"Backend failed during analysis for session {session_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    snapshot = service.snapshot
    total_scenes = len(snapshot.data.scenes) if snapshot.data else 0
    return {
        "session_id": session_id,
        "status": snapshot.status.value,
        "total_scenes": total_scenes,
        "total_images": total_scenes * 2,
    }


@router.get(
    "/api/storyboard/sessions/{session_id}",
    summary="Get storyboard session state",
    responses={404: {"description": "Session not found"}},
)
async def get_storyboard_session(session_id: str, include_images: bool = False) -> dict:
    """Get the latest snapshot of a session.

    Args:
        session_id: Session id
        include_images: Inline images as data URLs

    Returns:
        Session snapshot
    """
    snapshot = _get_session(session_id).snapshot
    result = snapshot.to_dict(include_images=include_images)
    if snapshot.data is not None:
        generated, total = count_generated_images(snapshot.data)
        result["progress"] = {"generated": generated, "total": total}
        result["direction_changes"] = [c.to_dict() for c in direction_changes(snapshot.data.scenes)]
    return result


@router.get("/api/storyboard/status", response_model=StoryboardStatusResponse, summary="Get storyboard service status")
async def get_storyboard_status() -> dict:
    """Return whether the generation backend is configured."""
    active = sum(
        1 for service in storyboard_sessions.values()
        if service.snapshot.status not in FINISHED_STATUSES
    )
    return {"gemini": is_backend_configured(), "active_sessions": active}


@router.websocket("/ws/storyboard/{session_id}")
async def websocket_storyboard(websocket: WebSocket, session_id: str) -> None:
    """WebSocket endpoint for real-time storyboard snapshots.

    Args:
        websocket: WebSocket connection
        session_id: Session to monitor
    """
    if session_id not in storyboard_sessions:
        await websocket.accept()
        await websocket.send_json({"type": "error", "message": "Session not found"})
        await websocket.close()
        return

    await ws_manager.connect(session_id, websocket)

    try:
        # Send current state immediately
        await websocket.send_json(_state_message(storyboard_sessions[session_id].snapshot))

        # Keep connection alive
        while True:
            try:
                data = await websocket.receive_text()
                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break

    except Exception as e:
        logger.error(f"WebSocket error for storyboard session {session_id}: {e}")
    finally:
        ws_manager.disconnect(session_id, websocket)


@router.get(
    "/api/storyboard/sessions/{session_id}/download/zip",
    summary="Download storyboard archive",
    description="Download every image plus metadata as a ZIP file. Requires all scene images.",
    responses={404: {"description": "Session not found"}, 409: {"description": "Images still missing"}},
)
async def download_storyboard_archive(session_id: str) -> Response:
    snapshot = _get_session(session_id).snapshot
    if snapshot.data is None:
        raise HTTPException(status_code=409, detail="Storyboard has not been analyzed yet")

    try:
        content = build_archive(snapshot.data, snapshot.character_image)
    except ExportPreconditionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return Response(
        content=content,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="storyboard_{session_id[:8]}.zip"',
        },
    )


@router.get(
    "/api/storyboard/sessions/{session_id}/download/pdf",
    summary="Download storyboard PDF",
    description="Render the storyboard as a PDF. Missing images appear as placeholders.",
    responses={404: {"description": "Session not found"}, 409: {"description": "Storyboard not analyzed yet"}},
)
async def download_storyboard_pdf(session_id: str) -> Response:
    snapshot = _get_session(session_id).snapshot
    if snapshot.data is None:
        raise HTTPException(status_code=409, detail="Storyboard has not been analyzed yet")

    content = await asyncio.to_thread(build_pdf, snapshot.data, snapshot.character_image)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'attachment; filename="storyboard_{session_id[:8]}.pdf"',
        },
    )
