from __future__ import annotations

import base64
import binascii
import logging
from typing import Any, Awaitable, Callable

from core.config import COLLABORATOR_TIMEOUT_SEC, SESSION_RETENTION_SEC
from core.logger import log_event
from core.state import SessionStatus
from interview_room.broadcast import RoomBroadcaster
from interview_room.collaborators.base import Collaborators, InterviewContext
from interview_room.errors import ConflictError, NotFoundError, TransientCollaboratorError, ValidationError
from interview_room.guards import bounded_call
from interview_room.invites import InviteVerifier
from interview_room.observers import ObserverProtocol
from interview_room.phase_machine import REASON_CANDIDATE_END, PhaseRules, evaluate
from interview_room.pipeline import TurnPipeline
from interview_room.policy import ReassurancePolicy
from interview_room.session.models import Connection, Session
from interview_room.session.recovery import restore_session
from interview_room.session.registry import SessionRegistry
from interview_room.system_metrics import decrement_metric, increment_metric, set_metric
from interview_room.termination import Finalizer, Terminated

logger = logging.getLogger("orchestrator")

SessionJob = Callable[[Session], Awaitable[Any]]


def decode_media(value: Any, field: str) -> bytes:
    try:
        return base64.b64decode(str(value or ""), validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(f"{field} is not base64", f"Invalid {field} payload")


class InterviewOrchestrator:
    """Entry point for every realtime event.

    Each call resolves the session in the registry and runs its work on that
    session's actor, so state for one interview is only touched by one job at a time.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        registry: SessionRegistry | None = None,
        invite_verifier: InviteVerifier | None = None,
        policy: ReassurancePolicy | None = None,
        rules: PhaseRules | None = None,
        timeout_sec: float = COLLABORATOR_TIMEOUT_SEC,
        retention_sec: float = SESSION_RETENTION_SEC,
    ):
        self.collaborators = collaborators
        self.registry = registry or SessionRegistry()
        self.invite_verifier = invite_verifier or InviteVerifier()
        self.rules = rules or PhaseRules()
        self.timeout_sec = timeout_sec
        self.retention_sec = retention_sec
        self.broadcaster = RoomBroadcaster()
        self.finalizer = Finalizer(collaborators, self.broadcaster, timeout_sec)
        self.pipeline = TurnPipeline(
            collaborators,
            self.broadcaster,
            self.finalizer,
            policy=policy,
            rules=self.rules,
            timeout_sec=timeout_sec,
        )
        self.observers = ObserverProtocol(self.broadcaster, collaborators.persistence, timeout_sec)

    async def _on_session(self, interview_id: str, job: SessionJob) -> Any:
        session = await self.registry.get(interview_id)
        return await session.actor.submit(lambda: job(session))

    @staticmethod
    def _require_candidate(session: Session, connection: Connection) -> None:
        if session.candidate_connection is not connection:
            raise ConflictError("stale candidate connection", "This device is no longer connected to the interview")

    # ================= CANDIDATE =================

    async def join_candidate(self, interview_id: str, candidate_id: str, token: str, connection: Connection) -> dict:
        interview_id = str(interview_id or "").strip()
        claims = self.invite_verifier.verify(interview_id, token)
        claimed_candidate = str(claims.get("candidate_id") or "")
        if claimed_candidate and candidate_id and claimed_candidate != str(candidate_id):
            raise ValidationError("invite issued for another candidate")

        session, created = await self.registry.get_or_create(interview_id)
        if created:
            increment_metric("sessions_active", 1)
            log_event("orchestrator", "session_created", interview_id)
        return await session.actor.submit(
            lambda: self._bind_candidate(session, candidate_id or claimed_candidate, connection, restore=created)
        )

    async def _bind_candidate(self, session: Session, candidate_id: str, connection: Connection, restore: bool = False) -> dict:
        if restore and await restore_session(self.collaborators.persistence, session, self.timeout_sec):
            log_event(
                "orchestrator",
                "session_restored",
                session.interview_id,
                turns=len(session.transcript),
                phase=session.phase.value,
            )
        if session.status == SessionStatus.COMPLETED:
            raise ConflictError("interview completed", "Interview has already ended")

        if session.context is None:
            try:
                session.context = await bounded_call(
                    "context_provider",
                    self.collaborators.context_provider.load(session.interview_id),
                    self.timeout_sec,
                )
            except TransientCollaboratorError as exc:
                logger.warning("context unavailable, using defaults | interview_id=%s err=%s", session.interview_id, exc)
                session.context = InterviewContext(interview_id=session.interview_id)
            session.language = session.context.language or "en"

        previous = session.candidate_connection
        if previous is None:
            increment_metric("candidate_connections_active", 1)
        elif previous is not connection:
            await self.broadcaster.send(previous, "error", {"message": "Interview opened on another device", "code": "superseded"})

        session.candidate_connection = connection
        session.candidate_id = str(candidate_id or session.candidate_id)
        session.status = SessionStatus.PAUSED if session.is_paused else SessionStatus.ACTIVE

        job = session.context.job if session.context is not None else {}
        payload = {
            "interviewId": session.interview_id,
            "language": session.language,
            "jobTitle": job.get("title"),
            "companyName": job.get("company_name"),
            "phase": session.phase.value,
            "phaseIndex": session.phase_index,
            "isPaused": session.is_paused,
            "transcript": session.transcript_dicts(),
            "resumed": bool(session.transcript),
        }
        log_event("orchestrator", "candidate_joined", session.interview_id, resumed=payload["resumed"])
        await self.broadcaster.send(connection, "joined", payload)
        await self.broadcaster.to_observers(session, "candidate-status", {"connected": True})
        return payload

    async def candidate_disconnected(self, interview_id: str, connection: Connection) -> None:
        async def _job(session: Session) -> None:
            if session.candidate_connection is not connection:
                return
            session.candidate_connection = None
            decrement_metric("candidate_connections_active", 1)
            log_event("orchestrator", "candidate_disconnected", session.interview_id)
            await self.broadcaster.to_observers(session, "candidate-status", {"connected": False})

        try:
            await self._on_session(interview_id, _job)
        except (NotFoundError, ConflictError):
            return

    async def start_interview(self, interview_id: str, connection: Connection):
        async def _job(session: Session):
            self._require_candidate(session, connection)
            return await self.pipeline.start(session)

        return await self._on_session(interview_id, _job)

    async def candidate_audio(self, interview_id: str, connection: Connection, chunk: Any) -> bool:
        audio = decode_media(chunk, "chunk")

        async def _job(session: Session) -> bool:
            self._require_candidate(session, connection)
            return await self.pipeline.buffer_audio(session, audio)

        return await self._on_session(interview_id, _job)

    async def candidate_audio_complete(self, interview_id: str, connection: Connection):
        async def _job(session: Session):
            self._require_candidate(session, connection)
            return await self.pipeline.complete_audio(session)

        return await self._on_session(interview_id, _job)

    async def candidate_text(self, interview_id: str, connection: Connection, text: str):
        async def _job(session: Session):
            self._require_candidate(session, connection)
            return await self.pipeline.submit_text(session, text)

        return await self._on_session(interview_id, _job)

    async def candidate_end(self, interview_id: str, connection: Connection) -> Terminated | None:
        async def _job(session: Session):
            self._require_candidate(session, connection)
            return await self.finalizer.finalize(session, REASON_CANDIDATE_END, origin=connection)

        return await self._on_session(interview_id, _job)

    # ================= HR OBSERVERS =================

    async def join_observer(self, interview_id: str, hr_user_id: str, hr_name: str, connection: Connection) -> dict:
        return await self._on_session(
            interview_id, lambda session: self.observers.join(session, hr_user_id, hr_name, connection)
        )

    async def observer_disconnected(self, interview_id: str, observer_id: str, connection: Connection) -> None:
        try:
            await self._on_session(interview_id, lambda session: self.observers.leave(session, observer_id, connection))
        except (NotFoundError, ConflictError):
            return

    async def hr_reveal(self, interview_id: str, observer_id: str) -> bool:
        return await self._on_session(interview_id, lambda session: self.observers.reveal(session, observer_id))

    async def hr_audio_toggle(self, interview_id: str, observer_id: str, enabled: bool) -> None:
        await self._on_session(interview_id, lambda session: self.observers.toggle_audio(session, observer_id, enabled))

    async def hr_video_toggle(self, interview_id: str, observer_id: str, enabled: bool) -> None:
        await self._on_session(interview_id, lambda session: self.observers.toggle_video(session, observer_id, enabled))

    async def hr_audio(self, interview_id: str, observer_id: str, chunk: Any) -> bool:
        encoded = str(chunk or "")
        decode_media(encoded, "chunk")
        return await self._on_session(interview_id, lambda session: self.observers.relay_audio(session, observer_id, encoded))

    async def hr_video(self, interview_id: str, observer_id: str, frame: Any) -> bool:
        encoded = str(frame or "")
        decode_media(encoded, "frame")
        return await self._on_session(interview_id, lambda session: self.observers.relay_video(session, observer_id, encoded))

    async def hr_pause(self, interview_id: str, observer_id: str) -> bool:
        return await self._on_session(interview_id, lambda session: self.observers.toggle_pause(session, observer_id))

    async def hr_resume(self, interview_id: str, observer_id: str) -> bool:
        return await self._on_session(interview_id, lambda session: self.observers.set_paused(session, observer_id, False))

    async def hr_note(self, interview_id: str, observer_id: str, text: str) -> None:
        await self._on_session(interview_id, lambda session: self.observers.note(session, observer_id, text))

    async def hr_end(self, interview_id: str, observer_id: str) -> Terminated | None:
        async def _job(session: Session):
            if observer_id not in session.observers:
                raise NotFoundError(f"observer {observer_id} not in {session.interview_id}", "Observer is not part of this interview")
            decision = evaluate(
                session.phase_index,
                session.candidate_turn_count(session.phase),
                session.candidate_turn_count(),
                self.rules,
                hr_end=True,
            )
            log_event("orchestrator", "hr_end", session.interview_id, observer_id=observer_id)
            return await self.finalizer.finalize(
                session, decision.reason or "hr_end", origin=session.observers[observer_id].connection
            )

        return await self._on_session(interview_id, _job)

    # ================= LIFECYCLE =================

    async def snapshot(self, interview_id: str) -> dict:
        return await self._on_session(interview_id, self._snapshot)

    @staticmethod
    async def _snapshot(session: Session) -> dict:
        return session.snapshot()

    async def sweep(self, now_ts: float | None = None) -> int:
        removed = await self.registry.sweep_completed(self.retention_sec, now_ts=now_ts)
        for session in removed:
            await session.actor.stop()
            log_event("orchestrator", "session_swept", session.interview_id)
        if removed:
            increment_metric("sessions_swept_total", len(removed))
        set_metric("sessions_active", float(len(self.registry)))
        return len(removed)

    async def shutdown(self) -> None:
        for session in await self.registry.all():
            await session.actor.stop()
