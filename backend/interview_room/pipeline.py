from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
import logging

from core.config import COLLABORATOR_TIMEOUT_SEC, MAX_PENDING_AUDIO_BYTES
from core.logger import log_event
from core.state import SessionStatus, Speaker, StressLevel
from interview_room.broadcast import RoomBroadcaster
from interview_room.collaborators.base import Collaborators
from interview_room.errors import ConflictError, TransientCollaboratorError, ValidationError
from interview_room.guards import bounded_call
from interview_room.phase_machine import PhaseRules, evaluate
from interview_room.policy import ReassurancePolicy
from interview_room.session.models import Session, Turn
from interview_room.session.recovery import save_live_state
from interview_room.system_metrics import increment_metric
from interview_room.termination import Finalizer, Terminated

logger = logging.getLogger("turn_pipeline")


@dataclass
class TurnResult:
    text: str
    phase: str
    stress_level: str
    sequence_number: int
    audio: str | None = None
    reassurance: bool = False

    def to_event(self) -> dict:
        return {
            "text": self.text,
            "audio": self.audio,
            "phase": self.phase,
            "stressLevel": self.stress_level,
            "sequenceNumber": self.sequence_number,
        }


class TurnPipeline:
    """Turns one unit of candidate input into the next interviewer utterance.

    Every method runs inside the session's actor, so a session never has two
    transcript-append + phase-decision sequences in flight.
    """

    def __init__(
        self,
        collaborators: Collaborators,
        broadcaster: RoomBroadcaster,
        finalizer: Finalizer,
        policy: ReassurancePolicy | None = None,
        rules: PhaseRules | None = None,
        timeout_sec: float = COLLABORATOR_TIMEOUT_SEC,
        max_pending_audio_bytes: int = MAX_PENDING_AUDIO_BYTES,
    ):
        self.collaborators = collaborators
        self.broadcaster = broadcaster
        self.finalizer = finalizer
        self.policy = policy or ReassurancePolicy()
        self.rules = rules or PhaseRules()
        self.timeout_sec = timeout_sec
        self.max_pending_audio_bytes = max_pending_audio_bytes

    # ---------- input buffering ----------

    async def buffer_audio(self, session: Session, chunk: bytes) -> bool:
        self._ensure_open(session)
        if session.is_paused:
            return False
        if not chunk:
            return False
        if session.pending_audio_bytes + len(chunk) > self.max_pending_audio_bytes:
            session.clear_pending_audio()
            raise ValidationError("pending audio overflow", "Recording too long, please answer in shorter parts")

        session.pending_audio.append(bytes(chunk))
        session.pending_audio_bytes += len(chunk)
        await self.broadcaster.to_candidate(session, "recording", {"status": "receiving"})
        return True

    async def complete_audio(self, session: Session) -> TurnResult | Terminated | None:
        self._ensure_open(session)
        if session.is_paused:
            session.clear_pending_audio()
            await self.broadcaster.to_candidate(session, "interview-paused", {"paused": True})
            return None
        if session.transcribing:
            raise ConflictError("transcription in flight", "Still processing your previous answer")
        if not session.pending_audio:
            raise ValidationError("no audio buffered", "No audio received")

        audio = b"".join(session.pending_audio)
        session.clear_pending_audio()
        session.transcribing = True
        await self.broadcaster.to_candidate(session, "ai-thinking", {"status": "transcribing"})
        try:
            text = await bounded_call(
                "transcriber",
                self.collaborators.transcriber.transcribe(audio, session.language),
                self.timeout_sec,
            )
        finally:
            session.transcribing = False

        text = str(text or "").strip()
        if not text:
            raise TransientCollaboratorError(
                "transcriber",
                "empty transcription",
                "We couldn't hear that clearly, please try again",
            )

        await self.broadcaster.to_candidate(session, "transcription", {"text": text})
        return await self.process_candidate_text(session, text)

    async def submit_text(self, session: Session, text: str) -> TurnResult | Terminated | None:
        self._ensure_open(session)
        if session.is_paused:
            await self.broadcaster.to_candidate(session, "interview-paused", {"paused": True})
            return None
        return await self.process_candidate_text(session, text)

    # ---------- turn processing ----------

    async def process_candidate_text(self, session: Session, text: str) -> TurnResult | Terminated | None:
        text = str(text or "").strip()
        if not text:
            raise ValidationError("empty response", "Response text required")

        question = session.last_ai_text()
        turn = session.append_turn(Speaker.CANDIDATE, text)
        increment_metric("candidate_turns_total", 1)
        await self._persist_turn(session, turn)
        await self._publish_transcript(session)

        await self.broadcaster.to_candidate(session, "ai-thinking", {"status": "analyzing"})
        await self._run_micro_analysis(session, question, text)

        decision = evaluate(
            session.phase_index,
            session.candidate_turn_count(session.phase),
            session.candidate_turn_count(),
            self.rules,
        )
        if decision.advanced and decision.phase_index > session.phase_index:
            session.phase_index = decision.phase_index
            log_event("turn_pipeline", "phase_advanced", session.interview_id, phase=session.phase.value)
            await self.broadcaster.to_observers(
                session, "phase-changed", {"phase": session.phase.value, "phaseIndex": session.phase_index}
            )
        await save_live_state(self.collaborators.persistence, session, self.timeout_sec)

        if decision.terminate:
            outcome = await self.finalizer.finalize(
                session, decision.reason or "phases_complete", origin=session.candidate_connection
            )
            return outcome or Terminated(reason=decision.reason or "phases_complete")

        reassurance = self.policy.should_reassure(session.stress_level)
        if reassurance:
            increment_metric("reassurances_total", 1)
            utterance = await bounded_call(
                "reassurance",
                self.collaborators.quick_assessor.reassurance(session.language),
                self.timeout_sec,
            )
        else:
            utterance = await bounded_call(
                "interviewer",
                self.collaborators.interviewer.next_utterance(self.build_context(session)),
                self.timeout_sec,
            )
        return await self.speak(session, str(utterance or "").strip(), reassurance=reassurance)

    async def start(self, session: Session) -> TurnResult | None:
        """Speak the opening line once; later calls repeat it to the candidate."""
        self._ensure_open(session)
        if session.is_paused:
            await self.broadcaster.to_candidate(session, "interview-paused", {"paused": True})
            return None
        if session.has_ai_turn():
            opening = next(turn for turn in session.transcript if turn.speaker == Speaker.AI)
            result = TurnResult(
                text=opening.text,
                phase=opening.phase.value,
                stress_level=session.stress_level.value,
                sequence_number=opening.sequence_number,
            )
            await self.broadcaster.to_candidate(session, "ai-question", result.to_event())
            return result

        utterance = await bounded_call(
            "interviewer",
            self.collaborators.interviewer.opening(session.context),
            self.timeout_sec,
        )
        return await self.speak(session, str(utterance or "").strip())

    async def speak(self, session: Session, text: str, reassurance: bool = False) -> TurnResult:
        if not text:
            raise TransientCollaboratorError("interviewer", "empty utterance")

        audio = None
        try:
            raw_audio = await bounded_call(
                "synthesizer",
                self.collaborators.synthesizer.speak(text, session.language),
                self.timeout_sec,
            )
            audio = base64.b64encode(raw_audio).decode("ascii") if raw_audio else None
        except TransientCollaboratorError as exc:
            logger.warning("tts unavailable, sending text only | interview_id=%s err=%s", session.interview_id, exc)
            await self.broadcaster.to_candidate(
                session, "error", {"message": "Audio is unavailable for this question", "code": exc.code}
            )

        turn = session.append_turn(Speaker.AI, text)
        await self._persist_turn(session, turn)

        result = TurnResult(
            text=text,
            phase=session.phase.value,
            stress_level=session.stress_level.value,
            sequence_number=turn.sequence_number,
            audio=audio,
            reassurance=reassurance,
        )
        await self.broadcaster.to_candidate(session, "ai-question", result.to_event())
        await self.broadcaster.to_observers(session, "ai-question", {**result.to_event(), "audio": None})
        await self._publish_transcript(session)
        return result

    def build_context(self, session: Session) -> dict:
        context = session.context
        return {
            "job": dict(context.job) if context is not None else {},
            "rubric": dict(context.rubric) if context is not None else {},
            "candidate": dict(context.candidate) if context is not None else {},
            "phase": session.phase.value,
            "transcript": session.transcript_dicts(),
            "stress_level": session.stress_level.value,
            "language": session.language,
        }

    # ---------- helpers ----------

    def _ensure_open(self, session: Session) -> None:
        if session.is_completed:
            raise ConflictError("interview completed", "Interview has already ended")
        if session.status == SessionStatus.JOINING:
            raise ConflictError("candidate not joined", "Join the interview first")

    async def _run_micro_analysis(self, session: Session, question: str, text: str) -> None:
        quick = self.collaborators.quick_assessor
        stress_result, authenticity_result = await asyncio.gather(
            bounded_call("stress_check", quick.stress(text), self.timeout_sec),
            bounded_call("authenticity_check", quick.authenticity(question, text), self.timeout_sec),
            return_exceptions=True,
        )

        if isinstance(stress_result, Exception):
            logger.warning("stress check failed; keeping %s | err=%s", session.stress_level.value, stress_result)
            stress_result = None
        else:
            level = str((stress_result or {}).get("level") or (stress_result or {}).get("stress_level") or "")
            if level in {item.value for item in StressLevel}:
                session.stress_level = StressLevel(level)

        if isinstance(authenticity_result, Exception):
            logger.warning("authenticity check failed | err=%s", authenticity_result)
            authenticity_result = None

        for kind, payload in (("stress_monitor", stress_result), ("authenticity_signal", authenticity_result)):
            if payload is None:
                continue
            observation = {"kind": kind, "sequenceNumber": len(session.transcript) - 1, **dict(payload)}
            session.micro_assessments.append(observation)
            try:
                await bounded_call(
                    "persistence",
                    self.collaborators.persistence.log_observation(session.interview_id, kind, dict(payload)),
                    self.timeout_sec,
                )
            except TransientCollaboratorError as exc:
                logger.warning("observation not persisted | interview_id=%s err=%s", session.interview_id, exc)

    async def _persist_turn(self, session: Session, turn: Turn) -> None:
        increment_metric("turns_appended_total", 1)
        try:
            await bounded_call(
                "persistence",
                self.collaborators.persistence.append_turn(session.interview_id, turn.to_dict()),
                self.timeout_sec,
            )
        except TransientCollaboratorError as exc:
            logger.warning("turn not persisted | interview_id=%s seq=%s err=%s", session.interview_id, turn.sequence_number, exc)
            await self.broadcaster.to_candidate(
                session,
                "error",
                {"message": "Progress could not be saved right now", "code": exc.code, "sequenceNumber": turn.sequence_number},
            )

    async def _publish_transcript(self, session: Session) -> None:
        await self.broadcaster.to_observers(session, "transcript-update", {"transcript": session.transcript_dicts()})
