"""
LIVECOACH Coach Service Router

Endpoints for live workout sessions. Clients run the pose detector locally
and stream the landmark arrays; the server counts reps, times holds and
requests AI coaching at milestones.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel

from core.config import settings

from .models import (
    ExerciseType,
    WorkoutSession,
    WorkoutSessionHandler,
    get_session_handler,
    parse_landmarks,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services() -> WorkoutSessionHandler:
    """Get the session handler instance."""
    return get_session_handler()


def _get_session_or_404(session_id: str) -> WorkoutSession:
    session = get_services().get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


# ============= Pydantic Models =============

class StartSessionRequest(BaseModel):
    exercise: str = ExerciseType.STRENGTH.value


class SwitchExerciseRequest(BaseModel):
    exercise: str


class FrameRequest(BaseModel):
    landmarks: Optional[List[Optional[Dict[str, Any]]]] = None


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """List the supported exercises and how they are scored."""
    cadence = {
        ExerciseType.STRENGTH: f"every {settings.REP_COACHING_INTERVAL} reps",
        ExerciseType.YOGA: f"every {settings.YOGA_COACHING_BUCKET} seconds held",
        ExerciseType.RUNNING: f"every {settings.RUNNING_COACHING_BUCKET} seconds held",
    }
    exercises = [
        {
            "id": exercise.value,
            "scoring": "hold" if exercise.is_hold_type else "reps",
            "coaching": cadence.get(exercise),
        }
        for exercise in ExerciseType
    ]
    return {"exercises": exercises, "total": len(exercises)}


@router.post("/session/start")
async def start_session(request: StartSessionRequest):
    """
    Start a new workout session.

    Returns a session ID for use with the WebSocket stream.
    """
    handler = get_services()

    try:
        session = handler.create_session(request.exercise)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return {
        "status": "created",
        "session_id": session.session_id,
        "session": session.start(),
        "websocket_url": f"/api/coach/ws/session/{session.session_id}"
    }


@router.get("/session/{session_id}")
async def get_session_status(session_id: str):
    """Get current session counters and feedback."""
    return _get_session_or_404(session_id).snapshot()


@router.post("/session/{session_id}/exercise")
async def switch_exercise(session_id: str, request: SwitchExerciseRequest):
    """Switch the active exercise; all counters start over."""
    session = _get_session_or_404(session_id)

    try:
        return session.switch_exercise(request.exercise)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/session/{session_id}/frame")
async def submit_frame(session_id: str, request: FrameRequest):
    """Analyze a single frame of landmarks (for clients without WebSockets)."""
    session = _get_session_or_404(session_id)
    return session.process_frame(parse_landmarks(request.landmarks))


@router.post("/session/{session_id}/tick")
async def tick_session(session_id: str):
    """Advance the hold timer by one second (for clients without WebSockets)."""
    session = _get_session_or_404(session_id)
    session.tick()
    return session.snapshot()


@router.delete("/session/{session_id}")
async def end_session(session_id: str):
    """End a session and discard its state."""
    session = _get_session_or_404(session_id)
    summary = session.snapshot()
    get_services().cleanup_session(session_id)
    return {"status": "ended", "session_id": session_id, "result": summary}


# ============= WebSocket Endpoints =============

async def _run_hold_timer(session: WorkoutSession):
    """Advance the session's hold timer once per tick interval."""
    while True:
        await asyncio.sleep(settings.TIMER_TICK_SECONDS)
        session.tick()


@router.websocket("/ws/session/{session_id}")
async def workout_session_stream(websocket: WebSocket, session_id: str):
    """
    Real-time workout session.

    Client messages:
    - {"type": "frame", "landmarks": [...] | null}
    - {"type": "switch_exercise", "exercise": "Yoga"}

    Server messages: SESSION_STARTED, FRAME_RESULT, EXERCISE_SWITCHED, ERROR
    """
    await websocket.accept()

    session = get_services().get_session(session_id)
    if not session:
        await websocket.send_json({
            "type": "ERROR",
            "message": f"Session {session_id} not found"
        })
        await websocket.close()
        return

    timer_task = asyncio.create_task(_run_hold_timer(session))

    try:
        await websocket.send_json({
            "type": "SESSION_STARTED",
            **session.start()
        })

        while True:
            raw = await websocket.receive_text()

            try:
                message = json.loads(raw)
                msg_type = message.get("type", "frame")

                if msg_type == "frame":
                    landmarks = parse_landmarks(message.get("landmarks"))
                    await websocket.send_json({
                        "type": "FRAME_RESULT",
                        **session.process_frame(landmarks)
                    })
                elif msg_type == "switch_exercise":
                    await websocket.send_json({
                        "type": "EXERCISE_SWITCHED",
                        **session.switch_exercise(message.get("exercise", ""))
                    })
                else:
                    await websocket.send_json({
                        "type": "ERROR",
                        "message": f"Unknown message type: {msg_type}"
                    })

            except (ValueError, AttributeError, TypeError) as e:
                await websocket.send_json({
                    "type": "ERROR",
                    "message": str(e)
                })

    except WebSocketDisconnect:
        logger.info(f"Session {session_id} disconnected")
    finally:
        timer_task.cancel()
        session.stop()
