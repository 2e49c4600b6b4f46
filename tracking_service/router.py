"""
REPSENSE Tracking Service Router

Endpoints for exercise tracking sessions: create a session, stream pose
landmark frames in, get rep counts, hold times and form feedback out.
"""

import asyncio
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from core.threading import FrameWorker
from core.websocket import MessageType, WebSocketMessage, error_message
from shared.utils import handle_exceptions, success_response

from .models import (
    ExerciseMode,
    ExerciseSessionHandler,
    Frame,
    SessionNotFoundError,
    get_session_handler,
)

logger = logging.getLogger(__name__)

router = APIRouter()


# Service instance (singleton pattern)
_session_handler: Optional[ExerciseSessionHandler] = None


def get_services() -> ExerciseSessionHandler:
    """Get or initialize the session handler."""
    global _session_handler
    if _session_handler is None:
        _session_handler = get_session_handler()
    return _session_handler


# ============= Pydantic Models =============

class LandmarkIn(BaseModel):
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0


class StartSessionRequest(BaseModel):
    user_id: str
    exercise_mode: str = "pushups"


class SetModeRequest(BaseModel):
    exercise_mode: str


class CalibrateRequest(BaseModel):
    duration_ms: Optional[float] = Field(default=None, gt=0, le=30000)
    skip: bool = False


class FrameRequest(BaseModel):
    timestamp_ms: float
    landmarks: Optional[List[LandmarkIn]] = None  # None: no person detected


# ============= REST Endpoints =============

@router.get("/modes")
async def list_modes():
    """List supported exercise modes."""
    return success_response([
        {
            "mode": mode.value,
            "label": mode.spec.label,
            "kind": mode.spec.kind.value,
            "requires_calibration": mode.spec.requires_calibration,
        }
        for mode in ExerciseMode
    ])


@router.post("/sessions")
@handle_exceptions
async def start_session(request: StartSessionRequest):
    """Create a tracking session for one user and exercise."""
    handler = get_services()
    session = handler.create_session(request.user_id, request.exercise_mode)
    return success_response(session.to_dict(), message="Session created")


@router.get("/sessions/{session_id}")
@handle_exceptions
async def get_session(session_id: str):
    """Current count, phase, posture and hold time of a session."""
    return success_response(get_services().get_stats(session_id))


@router.delete("/sessions/{session_id}")
@handle_exceptions
async def end_session(session_id: str):
    return success_response(get_services().end_session(session_id), message="Session ended")


@router.post("/sessions/{session_id}/mode")
@handle_exceptions
async def set_mode(session_id: str, request: SetModeRequest):
    """Switch exercise; the new mode starts from zero."""
    return success_response(get_services().set_mode(session_id, request.exercise_mode))


@router.post("/sessions/{session_id}/reset")
@handle_exceptions
async def reset_counter(session_id: str):
    return success_response(get_services().reset(session_id), message="Counter reset")


@router.post("/sessions/{session_id}/calibrate")
@handle_exceptions
async def calibrate(session_id: str, request: CalibrateRequest):
    """
    Calibrate body proportions from the frames posted during the window,
    or skip calibration and use defaults.
    """
    handler = get_services()
    if request.skip:
        data = handler.skip_calibration(session_id)
    else:
        data = await handler.calibrate(session_id, request.duration_ms)
    return success_response(data.to_dict(), message="Calibration complete")


@router.post("/sessions/{session_id}/frames")
@handle_exceptions
async def process_frame(session_id: str, request: FrameRequest):
    """Process one landmark frame and return the events it produced."""
    handler = get_services()
    if request.landmarks is None:
        result = handler.process_frame(session_id, None, request.timestamp_ms)
    else:
        frame = Frame.from_list([lm.model_dump() for lm in request.landmarks], request.timestamp_ms)
        result = handler.process_frame(session_id, frame)
    return success_response(result)


# ============= WebSocket Endpoint =============

def _handle_message(
    handler: ExerciseSessionHandler,
    session_id: str,
    message: WebSocketMessage,
    worker: FrameWorker,
) -> Optional[WebSocketMessage]:
    """Route one client message. Frames go to the worker; control runs inline."""
    payload = message.payload or {}

    if message.type == MessageType.FRAME:
        worker.offer((Frame.from_payload(payload), None))
        return None
    if message.type == MessageType.NO_POSE:
        worker.offer((None, payload.get("timestamp_ms")))
        return None
    if message.type == MessageType.SET_MODE:
        return WebSocketMessage(MessageType.STATS, handler.set_mode(session_id, payload.get("exercise_mode")))
    if message.type == MessageType.RESET:
        return WebSocketMessage(MessageType.STATS, handler.reset(session_id))
    if message.type == MessageType.GET_STATS:
        return WebSocketMessage(MessageType.STATS, handler.get_stats(session_id))
    if message.type == MessageType.PING:
        return WebSocketMessage(MessageType.PONG)
    return error_message(f"Unsupported message type: {message.type.value}")


async def _pump(websocket: WebSocket, outbox: "asyncio.Queue[WebSocketMessage]"):
    while True:
        message = await outbox.get()
        await websocket.send_text(message.to_json())


@router.websocket("/ws/{session_id}")
async def tracking_stream(websocket: WebSocket, session_id: str):
    """
    Stream frames for a session.

    Frames are handed to a single worker thread; if the client sends faster
    than frames are processed, waiting frames are replaced by newer ones.
    """
    handler = get_services()
    try:
        handler.get_session(session_id)
    except SessionNotFoundError:
        await websocket.close(code=4404, reason="Session not found")
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue = asyncio.Queue()

    def deliver(result: Any):
        loop.call_soon_threadsafe(outbox.put_nowait, WebSocketMessage(MessageType.FRAME_PROCESSED, result))

    def fail(error: Exception):
        loop.call_soon_threadsafe(outbox.put_nowait, error_message(str(error)))

    worker = FrameWorker(
        processor=lambda item: handler.process_frame(session_id, *item),
        on_result=deliver,
        on_error=fail,
        name=f"ws_{session_id}",
    )
    worker.start()
    sender = asyncio.create_task(_pump(websocket, outbox))
    logger.info(f"🔌 Stream opened for session {session_id}")

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                reply = _handle_message(handler, session_id, WebSocketMessage.from_json(raw), worker)
            except ValueError as e:
                reply = error_message(str(e))
            if reply is not None:
                await outbox.put(reply)
    except WebSocketDisconnect:
        logger.info(f"🔌 Stream closed for session {session_id}")
    finally:
        sender.cancel()
        worker.shutdown(wait=False)
        logger.debug(f"Stream worker stats: {worker.get_stats()}")
