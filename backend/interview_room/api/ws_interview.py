from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
import logging
from typing import Awaitable, Callable
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from core.config import MAX_WS_TEXT_BYTES
from core.logger import log_event
from interview_room.errors import InterviewRoomError, TerminationRaceError, ValidationError
from interview_room.orchestrator import InterviewOrchestrator
from interview_room.system_metrics import decrement_metric, increment_metric

logger = logging.getLogger("ws_interview")

router = APIRouter()

ROLE_CANDIDATE = "candidate"
ROLE_HR = "hr"


class WebSocketConnection:
    """Adapts a websocket to the room's Connection contract: one JSON text frame per event."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.connection_id = str(uuid.uuid4())
        self._send_lock = asyncio.Lock()

    async def send(self, event: str, payload: dict) -> None:
        if self.websocket.client_state != WebSocketState.CONNECTED:
            return
        encoded = json.dumps({"type": event, **dict(payload or {})}, default=str)
        async with self._send_lock:
            await self.websocket.send_text(encoded)


@dataclass
class ClientState:
    role: str = ""
    interview_id: str = ""
    observer_id: str = ""

    def require(self, role: str) -> None:
        if self.role != role or not self.interview_id:
            raise ValidationError(f"{role} event before join", "Join the interview first")


Handler = Callable[[InterviewOrchestrator, ClientState, WebSocketConnection, dict], Awaitable[None]]


# ================= CANDIDATE EVENTS =================

async def _join_interview(orchestrator, state, connection, data):
    if state.role == ROLE_HR:
        raise ValidationError("hr connection sent join-interview", "This connection already joined as an observer")
    interview_id = str(data.get("interviewId") or "").strip()
    if state.interview_id and state.interview_id != interview_id:
        raise ValidationError("candidate switched interviews", "This connection is bound to another interview")
    await orchestrator.join_candidate(
        interview_id,
        str(data.get("candidateId") or ""),
        str(data.get("token") or ""),
        connection,
    )
    state.role = ROLE_CANDIDATE
    state.interview_id = interview_id


async def _start_interview(orchestrator, state, connection, data):
    state.require(ROLE_CANDIDATE)
    await orchestrator.start_interview(state.interview_id, connection)


async def _candidate_audio(orchestrator, state, connection, data):
    state.require(ROLE_CANDIDATE)
    await orchestrator.candidate_audio(state.interview_id, connection, data.get("chunk"))


async def _candidate_audio_complete(orchestrator, state, connection, data):
    state.require(ROLE_CANDIDATE)
    await orchestrator.candidate_audio_complete(state.interview_id, connection)


async def _candidate_text(orchestrator, state, connection, data):
    state.require(ROLE_CANDIDATE)
    await orchestrator.candidate_text(state.interview_id, connection, str(data.get("text") or ""))


async def _end_interview(orchestrator, state, connection, data):
    state.require(ROLE_CANDIDATE)
    await orchestrator.candidate_end(state.interview_id, connection)


# ================= HR EVENTS =================

async def _hr_join(orchestrator, state, connection, data):
    if state.role == ROLE_CANDIDATE:
        raise ValidationError("candidate connection sent hr-join", "This connection already joined as the candidate")
    interview_id = str(data.get("interviewId") or "").strip()
    hr_user_id = str(data.get("hrUserId") or "").strip()
    if state.interview_id and (state.interview_id, state.observer_id) != (interview_id, hr_user_id):
        raise ValidationError("observer switched interviews", "This connection is bound to another interview")
    await orchestrator.join_observer(interview_id, hr_user_id, str(data.get("hrName") or ""), connection)
    state.role = ROLE_HR
    state.interview_id = interview_id
    state.observer_id = hr_user_id


async def _hr_reveal(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_reveal(state.interview_id, state.observer_id)


async def _hr_audio_toggle(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_audio_toggle(state.interview_id, state.observer_id, bool(data.get("enabled")))


async def _hr_video_toggle(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_video_toggle(state.interview_id, state.observer_id, bool(data.get("enabled")))


async def _hr_audio(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_audio(state.interview_id, state.observer_id, data.get("chunk"))


async def _hr_video(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_video(state.interview_id, state.observer_id, data.get("frame"))


async def _hr_pause(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_pause(state.interview_id, state.observer_id)


async def _hr_resume(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_resume(state.interview_id, state.observer_id)


async def _hr_end_interview(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_end(state.interview_id, state.observer_id)


async def _hr_note(orchestrator, state, connection, data):
    state.require(ROLE_HR)
    await orchestrator.hr_note(state.interview_id, state.observer_id, str(data.get("text") or ""))


async def _ping(orchestrator, state, connection, data):
    await connection.send("pong", {"ts": data.get("ts")})


EVENT_HANDLERS: dict[str, Handler] = {
    "ping": _ping,
    "join-interview": _join_interview,
    "start-interview": _start_interview,
    "candidate-audio": _candidate_audio,
    "candidate-audio-complete": _candidate_audio_complete,
    "candidate-text": _candidate_text,
    "end-interview": _end_interview,
    "hr-join": _hr_join,
    "hr-reveal": _hr_reveal,
    "hr-audio-toggle": _hr_audio_toggle,
    "hr-video-toggle": _hr_video_toggle,
    "hr-audio": _hr_audio,
    "hr-video": _hr_video,
    "hr-pause": _hr_pause,
    "hr-resume": _hr_resume,
    "hr-end-interview": _hr_end_interview,
    "hr-note": _hr_note,
}


async def dispatch(
    orchestrator: InterviewOrchestrator,
    state: ClientState,
    connection: WebSocketConnection,
    raw: str,
) -> None:
    if len(raw.encode("utf-8")) > MAX_WS_TEXT_BYTES:
        await connection.send("error", {"message": "Message too large", "code": "validation_error"})
        return
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        logger.warning("Invalid WS JSON | connection=%s err=%s", connection.connection_id, exc)
        await connection.send("error", {"message": "Malformed message", "code": "validation_error"})
        return
    if not isinstance(data, dict):
        await connection.send("error", {"message": "Malformed message", "code": "validation_error"})
        return

    event = str(data.get("type") or "").strip()
    handler = EVENT_HANDLERS.get(event)
    if handler is None:
        await connection.send("error", {"message": f"Unknown event: {event or 'missing type'}", "code": "validation_error"})
        return

    log_event("ws_interview", "message_received", state.interview_id, message_type=event, role=state.role or "anonymous")
    try:
        await handler(orchestrator, state, connection, data)
    except TerminationRaceError:
        return
    except InterviewRoomError as exc:
        logger.info("event rejected | event=%s code=%s detail=%s", event, exc.code, exc)
        await connection.send("error", {"message": exc.public_message, "code": exc.code})
    except Exception:
        logger.exception("event handler failed | event=%s interview_id=%s", event, state.interview_id)
        await connection.send("error", {"message": "Something went wrong, please try again", "code": "internal_error"})


async def _on_disconnect(orchestrator: InterviewOrchestrator, state: ClientState, connection: WebSocketConnection) -> None:
    if not state.interview_id:
        return
    if state.role == ROLE_CANDIDATE:
        await orchestrator.candidate_disconnected(state.interview_id, connection)
    elif state.role == ROLE_HR:
        await orchestrator.observer_disconnected(state.interview_id, state.observer_id, connection)


@router.websocket("/ws/interview")
async def interview_ws(websocket: WebSocket):
    orchestrator: InterviewOrchestrator = websocket.app.state.orchestrator
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    state = ClientState()
    increment_metric("ws_connections_active", 1)
    log_event("ws_interview", "connect", "", connection_id=connection.connection_id)

    try:
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                log_event("ws_interview", "disconnect", state.interview_id, role=state.role, code=msg.get("code"))
                break
            if msg.get("text") is None:
                await connection.send("error", {"message": "Send events as JSON text frames", "code": "validation_error"})
                continue
            await dispatch(orchestrator, state, connection, str(msg.get("text") or ""))
    except WebSocketDisconnect as exc:
        log_event("ws_interview", "disconnect", state.interview_id, role=state.role, code=exc.code)
    finally:
        decrement_metric("ws_connections_active", 1)
        increment_metric("ws_disconnects_total", 1)
        try:
            await _on_disconnect(orchestrator, state, connection)
        except Exception:
            logger.exception("disconnect cleanup failed | interview_id=%s", state.interview_id)
