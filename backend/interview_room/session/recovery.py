from __future__ import annotations

import logging
from typing import Any

from core.state import PHASES, Phase, SessionStatus, Speaker, StressLevel
from interview_room.collaborators.base import Persistence
from interview_room.errors import TransientCollaboratorError
from interview_room.guards import bounded_call
from interview_room.session.models import Session, Turn

logger = logging.getLogger("interview_room.session.recovery")


def _turns_from_records(records: list[dict[str, Any]]) -> list[Turn]:
    ordered = sorted(
        (record for record in records if isinstance(record, dict) and str(record.get("text") or "").strip()),
        key=lambda record: int(record.get("sequenceNumber") or 0),
    )
    turns: list[Turn] = []
    for record in ordered:
        try:
            speaker = Speaker(str(record.get("speaker")))
            phase = Phase(str(record.get("phase") or Phase.WARMUP.value))
        except ValueError:
            logger.warning("skipping unreadable stored turn | record=%s", record)
            continue
        turn = Turn(speaker=speaker, text=str(record["text"]), sequence_number=len(turns), phase=phase)
        if record.get("timestamp") is not None:
            turn.timestamp = float(record["timestamp"])
        turns.append(turn)
    return turns


def apply_stored_state(session: Session, stored: dict[str, Any]) -> bool:
    """Rebuild transcript and live flags from a stored record. Returns True when anything was restored."""
    turns = _turns_from_records(list(stored.get("transcript") or []))
    live = dict(stored.get("live_state") or {})
    if not turns and not live:
        return False

    session.transcript = turns
    phase_index = int(live.get("phaseIndex") or 0)
    if turns:
        phase_index = max(phase_index, max(PHASES.index(turn.phase) for turn in turns))
    session.phase_index = min(max(phase_index, 0), len(PHASES) - 1)

    stress = str(live.get("stressLevel") or "")
    if stress in {item.value for item in StressLevel}:
        session.stress_level = StressLevel(stress)
    session.is_paused = bool(live.get("isPaused"))
    if live.get("language"):
        session.language = str(live["language"])
    if live.get("startedAt"):
        session.started_at = float(live["startedAt"])

    if live.get("status") == SessionStatus.COMPLETED.value:
        session.status = SessionStatus.COMPLETED
        session.completed_at = float(live.get("completedAt") or live.get("updatedAt") or 0.0) or None
    return True


async def restore_session(persistence: Persistence, session: Session, timeout_sec: float) -> bool:
    try:
        stored = await bounded_call("persistence", persistence.load_session(session.interview_id), timeout_sec)
    except TransientCollaboratorError as exc:
        logger.warning("stored session unavailable, starting fresh | interview_id=%s err=%s", session.interview_id, exc)
        return False
    if not stored:
        return False
    return apply_stored_state(session, stored)


async def save_live_state(persistence: Persistence, session: Session, timeout_sec: float) -> bool:
    try:
        await bounded_call("persistence", persistence.update_live_state(session.interview_id, session.live_state()), timeout_sec)
    except TransientCollaboratorError as exc:
        logger.warning("live state not persisted | interview_id=%s err=%s", session.interview_id, exc)
        return False
    return True
