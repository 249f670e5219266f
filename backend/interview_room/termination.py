from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
import logging
import time

from core.config import COLLABORATOR_TIMEOUT_SEC
from core.logger import log_event
from core.state import SessionStatus, Speaker
from interview_room.broadcast import RoomBroadcaster
from interview_room.collaborators.base import Collaborators
from interview_room.errors import TerminationRaceError, TransientCollaboratorError
from interview_room.guards import bounded_call
from interview_room.session.models import Connection, Session
from interview_room.session.recovery import save_live_state
from interview_room.system_metrics import increment_metric

logger = logging.getLogger("termination")

DEFAULT_CLOSING = "Thank you for your time today. The team will review the interview and you will hear back soon."


@dataclass
class Terminated:
    reason: str
    report: dict | None = None
    closing_text: str = ""


def report_preview(report: dict | None) -> dict:
    report = report or {}
    return {
        "overall_fit": report.get("overall_fit"),
        "overall_score": report.get("overall_score"),
        "recommendation": report.get("recommendation"),
    }


class Finalizer:
    def __init__(
        self,
        collaborators: Collaborators,
        broadcaster: RoomBroadcaster,
        timeout_sec: float = COLLABORATOR_TIMEOUT_SEC,
    ):
        self.collaborators = collaborators
        self.broadcaster = broadcaster
        self.timeout_sec = timeout_sec

    def try_begin(self, session: Session, reason: str) -> None:
        if session.is_completed:
            raise TerminationRaceError(f"{session.interview_id} already completing; trigger={reason}")
        session.finalizing = True

    async def finalize(self, session: Session, reason: str, origin: Connection | None = None) -> Terminated | None:
        """Complete the interview once. Later triggers return None without side effects.

        ``origin`` is the connection that triggered termination; it is told when the
        final record could not be stored.
        """
        try:
            self.try_begin(session, reason)
        except TerminationRaceError as exc:
            increment_metric("termination_races_absorbed", 1)
            logger.info("Finalize skipped (already completing) | %s", exc)
            return None

        log_event("termination", "finalize_started", session.interview_id, reason=reason)
        report: dict | None = None
        closing = DEFAULT_CLOSING
        try:
            closing = await self._closing_text(session)
            closing_turn = session.append_turn(Speaker.AI, closing)
            await self._persist_turn(session, closing_turn.to_dict(), origin)

            analyses = await self._macro_analyses(session)
            full_context = self._full_context(session, reason, analyses)
            report = await self._report(full_context)
            session.report = report

            result = {
                "interview_id": session.interview_id,
                "status": SessionStatus.COMPLETED.value,
                "termination_reason": reason,
                "started_at": session.started_at,
                "completed_at": time.time(),
                "phase": session.phase.value,
                "transcript": session.transcript_dicts(),
                "micro_assessments": list(session.micro_assessments),
                **analyses,
                "report": report,
            }
            try:
                await bounded_call("persistence", self.collaborators.persistence.finalize(session.interview_id, result), self.timeout_sec)
            except TransientCollaboratorError as exc:
                logger.error("final record not persisted | interview_id=%s err=%s", session.interview_id, exc)
                await self._report_unsaved(session, origin, exc)

            audio = await self._closing_audio(session, closing)
            session.clear_pending_audio()
            session.status = SessionStatus.COMPLETED
            session.completed_at = time.time()
            await save_live_state(self.collaborators.persistence, session, self.timeout_sec)

            await self.broadcaster.to_candidate(
                session,
                "interview-complete",
                {"message": closing, "audio": audio, "report_preview": report_preview(report)},
            )
            await self.broadcaster.to_observers(
                session,
                "interview-completed",
                {"report": report, "reason": reason, "transcript": session.transcript_dicts()},
            )
        finally:
            if session.status != SessionStatus.COMPLETED:
                session.status = SessionStatus.COMPLETED
                session.completed_at = time.time()

        increment_metric("interviews_completed_total", 1)
        log_event("termination", "finalize_done", session.interview_id, reason=reason)
        return Terminated(reason=reason, report=report, closing_text=closing)

    async def _closing_text(self, session: Session) -> str:
        try:
            text = await bounded_call("interviewer", self.collaborators.interviewer.closing(session.language), self.timeout_sec)
        except TransientCollaboratorError:
            return DEFAULT_CLOSING
        return str(text or "").strip() or DEFAULT_CLOSING

    async def _closing_audio(self, session: Session, closing: str) -> str | None:
        try:
            audio = await bounded_call(
                "synthesizer",
                self.collaborators.synthesizer.speak(closing, session.language),
                self.timeout_sec,
            )
        except TransientCollaboratorError:
            return None
        return base64.b64encode(audio).decode("ascii") if audio else None

    async def _report_unsaved(self, session: Session, origin: Connection | None, exc: TransientCollaboratorError) -> None:
        await self.broadcaster.send(
            origin or session.candidate_connection,
            "error",
            {"message": "The interview record could not be saved right now", "code": exc.code},
        )

    async def _persist_turn(self, session: Session, turn: dict, origin: Connection | None = None) -> None:
        try:
            await bounded_call("persistence", self.collaborators.persistence.append_turn(session.interview_id, turn), self.timeout_sec)
        except TransientCollaboratorError as exc:
            logger.warning("closing turn not persisted | interview_id=%s err=%s", session.interview_id, exc)
            await self._report_unsaved(session, origin, exc)

    async def _macro_analyses(self, session: Session) -> dict:
        macro = self.collaborators.macro_assessor
        transcript = session.transcript_dicts()
        cv_text = session.context.cv_text if session.context is not None else ""
        names = ("consistency_analysis", "authenticity_analysis", "stress_assessment")
        results = await asyncio.gather(
            bounded_call("consistency_checker", macro.consistency(transcript, cv_text), self.timeout_sec),
            bounded_call("authenticity_analyzer", macro.authenticity(transcript, cv_text), self.timeout_sec),
            bounded_call("stress_assessor", macro.stress(transcript, cv_text), self.timeout_sec),
            return_exceptions=True,
        )
        analyses = {}
        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.warning("%s unavailable | interview_id=%s err=%s", name, session.interview_id, result)
                analyses[name] = {"error": "analysis unavailable"}
            else:
                analyses[name] = dict(result or {})
        return analyses

    def _full_context(self, session: Session, reason: str, analyses: dict) -> dict:
        context = session.context
        return {
            "interview_id": session.interview_id,
            "termination_reason": reason,
            "language": session.language,
            "job": dict(context.job) if context is not None else {},
            "candidate": dict(context.candidate) if context is not None else {},
            "rubric": dict(context.rubric) if context is not None else {},
            "transcript": session.transcript_dicts(),
            "micro_assessments": list(session.micro_assessments),
            "observers": [observer.log_record() for observer in session.observers.values()],
            **analyses,
        }

    async def _report(self, full_context: dict) -> dict:
        try:
            report = await bounded_call(
                "report_synthesizer",
                self.collaborators.report_synthesizer.generate(full_context),
                self.timeout_sec,
            )
        except TransientCollaboratorError as exc:
            logger.error("report synthesis failed | interview_id=%s err=%s", full_context.get("interview_id"), exc)
            return {"summary": "Report generation failed; transcript and analyses were saved.", "error": True}
        return dict(report or {})
