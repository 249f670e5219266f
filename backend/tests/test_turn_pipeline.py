import asyncio
import base64
import dataclasses

import pytest

from core.state import Phase, SessionStatus, Speaker, StressLevel
from interview_room.broadcast import RoomBroadcaster
from interview_room.collaborators.persistence import MemoryPersistence
from interview_room.errors import ConflictError, TransientCollaboratorError, ValidationError
from interview_room.phase_machine import PhaseRules
from interview_room.pipeline import TurnPipeline, TurnResult
from interview_room.policy import ReassurancePolicy
from interview_room.session.models import Session
from interview_room.termination import Finalizer, Terminated


class SilentTranscriber:
    async def transcribe(self, audio, language_hint=None):
        return "   "


class BrokenStressAssessor:
    async def stress(self, text):
        raise RuntimeError("stress model down")

    async def authenticity(self, question, response):
        return {"quality": "fair"}

    async def reassurance(self, language):
        return "Take your time."


class SlowInterviewer:
    async def next_utterance(self, context):
        await asyncio.sleep(5)
        return "never"

    async def opening(self, context):
        return "Welcome."

    async def closing(self, language):
        return "Bye."


class BrokenSynthesizer:
    async def speak(self, text, language, voice_id=None):
        raise RuntimeError("tts down")


class AlwaysHighStress:
    async def stress(self, text):
        return {"level": "high", "indicators": ["a", "b", "c"]}

    async def authenticity(self, question, response):
        return {"quality": "fair"}

    async def reassurance(self, language):
        return "You're doing well, take a breath."


def _b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


@pytest.mark.asyncio
async def test_opening_then_answer_keeps_sequence_numbers_dense(orchestrator, join_candidate, long_answer):
    candidate = await join_candidate(orchestrator)

    await orchestrator.start_interview("iv-1", candidate)
    await orchestrator.candidate_text("iv-1", candidate, long_answer)
    await orchestrator.candidate_text("iv-1", candidate, long_answer)

    session = await orchestrator.registry.get("iv-1")
    assert [turn.sequence_number for turn in session.transcript] == list(range(len(session.transcript)))
    assert [turn.speaker for turn in session.transcript] == [
        Speaker.AI,
        Speaker.CANDIDATE,
        Speaker.AI,
        Speaker.CANDIDATE,
        Speaker.AI,
    ]
    questions = candidate.of("ai-question")
    assert questions[0]["text"].startswith("Hello Dana")
    assert questions[-1]["sequenceNumber"] == 4
    assert questions[-1]["audio"]


@pytest.mark.asyncio
async def test_start_interview_twice_does_not_duplicate_opening(orchestrator, join_candidate, persistence):
    candidate = await join_candidate(orchestrator)

    await orchestrator.start_interview("iv-1", candidate)
    await orchestrator.start_interview("iv-1", candidate)

    session = await orchestrator.registry.get("iv-1")
    assert len(session.transcript) == 1
    assert len(candidate.of("ai-question")) == 2
    assert len(persistence.turns["iv-1"]) == 1


@pytest.mark.asyncio
async def test_audio_chunks_are_transcribed_on_complete(orchestrator, join_candidate, long_answer):
    candidate = await join_candidate(orchestrator)
    await orchestrator.start_interview("iv-1", candidate)

    half = len(long_answer) // 2
    await orchestrator.candidate_audio("iv-1", candidate, _b64(long_answer[:half].encode("utf-8")))
    await orchestrator.candidate_audio("iv-1", candidate, _b64(long_answer[half:].encode("utf-8")))
    await orchestrator.candidate_audio_complete("iv-1", candidate)

    session = await orchestrator.registry.get("iv-1")
    assert candidate.of("recording") == [{"status": "receiving"}, {"status": "receiving"}]
    assert candidate.of("transcription") == [{"text": long_answer}]
    assert session.transcript[1].text == long_answer
    assert session.pending_audio == []


@pytest.mark.asyncio
async def test_audio_complete_without_audio_is_rejected(orchestrator, join_candidate):
    candidate = await join_candidate(orchestrator)
    with pytest.raises(ValidationError) as excinfo:
        await orchestrator.candidate_audio_complete("iv-1", candidate)
    assert excinfo.value.public_message == "No audio received"


@pytest.mark.asyncio
async def test_invalid_base64_chunk_is_rejected(orchestrator, join_candidate):
    candidate = await join_candidate(orchestrator)
    with pytest.raises(ValidationError):
        await orchestrator.candidate_audio("iv-1", candidate, "***not base64***")


@pytest.mark.asyncio
async def test_empty_transcription_surfaces_error_and_keeps_session_active(build_orchestrator, collaborators, join_candidate):
    orchestrator = build_orchestrator(dataclasses.replace(collaborators, transcriber=SilentTranscriber()))
    candidate = await join_candidate(orchestrator)
    await orchestrator.start_interview("iv-1", candidate)

    await orchestrator.candidate_audio("iv-1", candidate, _b64(b"noise"))
    with pytest.raises(TransientCollaboratorError) as excinfo:
        await orchestrator.candidate_audio_complete("iv-1", candidate)

    session = await orchestrator.registry.get("iv-1")
    assert "couldn't hear" in excinfo.value.public_message
    assert session.status == SessionStatus.ACTIVE
    assert len(session.transcript) == 1
    assert session.transcribing is False


@pytest.mark.asyncio
async def test_quick_stress_failure_keeps_previous_level(build_orchestrator, collaborators, join_candidate, long_answer):
    orchestrator = build_orchestrator(dataclasses.replace(collaborators, quick_assessor=BrokenStressAssessor()))
    candidate = await join_candidate(orchestrator)
    session = await orchestrator.registry.get("iv-1")
    session.stress_level = StressLevel.MEDIUM

    await orchestrator.candidate_text("iv-1", candidate, long_answer)

    assert session.stress_level == StressLevel.MEDIUM
    assert session.transcript[-1].speaker == Speaker.AI
    assert [item["kind"] for item in session.micro_assessments] == ["authenticity_signal"]


@pytest.mark.asyncio
async def test_micro_observations_are_logged(orchestrator, join_candidate, persistence):
    candidate = await join_candidate(orchestrator)

    await orchestrator.candidate_text("iv-1", candidate, "sorry I don't know")

    session = await orchestrator.registry.get("iv-1")
    assert session.stress_level == StressLevel.HIGH
    kinds = [entry["kind"] for entry in persistence.observations["iv-1"]]
    assert kinds == ["stress_monitor", "authenticity_signal"]


@pytest.mark.asyncio
async def test_interviewer_timeout_fails_soft(build_orchestrator, collaborators, join_candidate, long_answer):
    orchestrator = build_orchestrator(
        dataclasses.replace(collaborators, interviewer=SlowInterviewer()),
        timeout_sec=0.05,
    )
    candidate = await join_candidate(orchestrator)

    with pytest.raises(TransientCollaboratorError):
        await orchestrator.candidate_text("iv-1", candidate, long_answer)

    session = await orchestrator.registry.get("iv-1")
    assert session.status == SessionStatus.ACTIVE
    assert session.transcript[-1].speaker == Speaker.CANDIDATE


@pytest.mark.asyncio
async def test_tts_failure_delivers_text_only(build_orchestrator, collaborators, join_candidate):
    orchestrator = build_orchestrator(dataclasses.replace(collaborators, synthesizer=BrokenSynthesizer()))
    candidate = await join_candidate(orchestrator)

    await orchestrator.start_interview("iv-1", candidate)

    question = candidate.of("ai-question")[0]
    assert question["audio"] is None
    assert question["text"]
    assert candidate.of("error")[0]["code"] == "collaborator_unavailable"


@pytest.mark.asyncio
async def test_high_stress_with_certain_policy_sends_reassurance(build_orchestrator, collaborators, join_candidate, long_answer):
    orchestrator = build_orchestrator(
        dataclasses.replace(collaborators, quick_assessor=AlwaysHighStress()),
        policy=ReassurancePolicy(probability=1.0),
    )
    candidate = await join_candidate(orchestrator)

    await orchestrator.candidate_text("iv-1", candidate, long_answer)

    assert candidate.of("ai-question")[-1]["text"] == "You're doing well, take a breath."
    assert candidate.of("ai-question")[-1]["stressLevel"] == "high"


@pytest.mark.asyncio
async def test_phase_advances_after_three_warmup_answers(orchestrator, join_candidate, long_answer, connection):
    candidate = await join_candidate(orchestrator)
    observer = connection("hr")
    await orchestrator.join_observer("iv-1", "hr-1", "Riley", observer)

    for _ in range(3):
        await orchestrator.candidate_text("iv-1", candidate, long_answer)

    session = await orchestrator.registry.get("iv-1")
    assert session.phase == Phase.CLAIM_VERIFICATION
    assert observer.of("phase-changed") == [{"phase": "claim_verification", "phaseIndex": 1}]
    assert [turn.phase for turn in session.transcript if turn.speaker == Speaker.CANDIDATE] == [Phase.WARMUP] * 3
    assert candidate.of("ai-question")[-1]["phase"] == "claim_verification"


@pytest.mark.asyncio
async def test_full_interview_completes_after_last_phase(orchestrator, join_candidate, long_answer, persistence):
    candidate = await join_candidate(orchestrator)
    await orchestrator.start_interview("iv-1", candidate)

    outcome = None
    for _ in range(14):
        outcome = await orchestrator.candidate_text("iv-1", candidate, long_answer)

    session = await orchestrator.registry.get("iv-1")
    assert outcome.reason == "phases_complete"
    assert session.status == SessionStatus.COMPLETED
    assert session.phase == Phase.REFLECTION
    assert len(persistence.finalized["iv-1"]) == 1
    assert candidate.of("interview-complete")[0]["report_preview"]["overall_fit"] == "fair"

    with pytest.raises(ConflictError):
        await orchestrator.candidate_text("iv-1", candidate, long_answer)


@pytest.mark.asyncio
async def test_pipeline_rejects_audio_complete_while_transcribing(collaborators):
    broadcaster = RoomBroadcaster()
    pipeline = TurnPipeline(
        collaborators,
        broadcaster,
        Finalizer(collaborators, broadcaster),
        policy=ReassurancePolicy(probability=0.0),
        rules=PhaseRules(thresholds=(3, 3, 3, 3, 2), max_candidate_turns=20),
    )
    session = Session(interview_id="iv-direct", status=SessionStatus.ACTIVE)
    session.pending_audio.append(b"hello")
    session.transcribing = True

    with pytest.raises(ConflictError):
        await pipeline.complete_audio(session)


@pytest.mark.asyncio
async def test_pending_audio_overflow_resets_buffer(collaborators):
    broadcaster = RoomBroadcaster()
    pipeline = TurnPipeline(
        collaborators,
        broadcaster,
        Finalizer(collaborators, broadcaster),
        max_pending_audio_bytes=8,
    )
    session = Session(interview_id="iv-direct", status=SessionStatus.ACTIVE)

    assert await pipeline.buffer_audio(session, b"12345") is True
    with pytest.raises(ValidationError):
        await pipeline.buffer_audio(session, b"67890")
    assert session.pending_audio == []
    assert session.pending_audio_bytes == 0


class UnsavedTurnPersistence(MemoryPersistence):
    async def append_turn(self, interview_id, turn):
        raise OSError("disk full")


@pytest.mark.asyncio
async def test_concurrent_audio_completions_run_one_at_a_time(orchestrator, join_candidate, long_answer):
    candidate = await join_candidate(orchestrator)
    await orchestrator.start_interview("iv-1", candidate)
    await orchestrator.candidate_audio("iv-1", candidate, _b64(long_answer.encode("utf-8")))

    results = await asyncio.gather(
        orchestrator.candidate_audio_complete("iv-1", candidate),
        orchestrator.candidate_audio_complete("iv-1", candidate),
        return_exceptions=True,
    )

    session = await orchestrator.registry.get("iv-1")
    assert sum(isinstance(result, TurnResult) for result in results) == 1
    assert sum(isinstance(result, ValidationError) for result in results) == 1
    assert [turn.sequence_number for turn in session.transcript] == [0, 1, 2]
    assert [turn.speaker for turn in session.transcript] == [Speaker.AI, Speaker.CANDIDATE, Speaker.AI]
    assert candidate.of("transcription") == [{"text": long_answer}]


@pytest.mark.asyncio
async def test_concurrent_answers_alternate_with_questions(orchestrator, join_candidate, long_answer):
    candidate = await join_candidate(orchestrator)
    await orchestrator.start_interview("iv-1", candidate)

    await asyncio.gather(*(orchestrator.candidate_text("iv-1", candidate, long_answer) for _ in range(2)))

    session = await orchestrator.registry.get("iv-1")
    assert [turn.sequence_number for turn in session.transcript] == list(range(5))
    assert [turn.speaker for turn in session.transcript] == [
        Speaker.AI,
        Speaker.CANDIDATE,
        Speaker.AI,
        Speaker.CANDIDATE,
        Speaker.AI,
    ]


@pytest.mark.asyncio
async def test_twentieth_answer_ends_interview_at_safety_cap(build_orchestrator, join_candidate, long_answer, persistence):
    orchestrator = build_orchestrator(rules=PhaseRules(thresholds=(50, 50, 50, 50, 50), max_candidate_turns=20))
    candidate = await join_candidate(orchestrator)

    outcomes = [await orchestrator.candidate_text("iv-1", candidate, long_answer) for _ in range(20)]

    session = await orchestrator.registry.get("iv-1")
    assert all(isinstance(outcome, TurnResult) for outcome in outcomes[:19])
    assert isinstance(outcomes[-1], Terminated)
    assert outcomes[-1].reason == "safety_cap"
    assert session.candidate_turn_count() == 20
    assert session.phase == Phase.WARMUP
    assert session.status == SessionStatus.COMPLETED
    assert len(persistence.finalized["iv-1"]) == 1
    assert len(candidate.of("interview-complete")) == 1

    with pytest.raises(ConflictError):
        await orchestrator.candidate_text("iv-1", candidate, long_answer)


@pytest.mark.asyncio
async def test_unsaved_turn_is_reported_and_interview_continues(build_orchestrator, collaborators, join_candidate, long_answer):
    orchestrator = build_orchestrator(dataclasses.replace(collaborators, persistence=UnsavedTurnPersistence()))
    candidate = await join_candidate(orchestrator)

    result = await orchestrator.candidate_text("iv-1", candidate, long_answer)

    session = await orchestrator.registry.get("iv-1")
    errors = candidate.of("error")
    assert isinstance(result, TurnResult)
    assert [error["sequenceNumber"] for error in errors] == [0, 1]
    assert {error["code"] for error in errors} == {"collaborator_unavailable"}
    assert errors[0]["message"] == "Progress could not be saved right now"
    assert candidate.of("ai-question")[-1]["sequenceNumber"] == 1
    assert len(session.transcript) == 2
    assert session.status == SessionStatus.ACTIVE


@pytest.mark.asyncio
async def test_start_interview_while_paused_waits_for_resume(orchestrator, join_candidate, connection):
    candidate = await join_candidate(orchestrator)
    await orchestrator.join_observer("iv-1", "hr-1", "Riley", connection("hr"))
    await orchestrator.hr_pause("iv-1", "hr-1")

    assert await orchestrator.start_interview("iv-1", candidate) is None

    session = await orchestrator.registry.get("iv-1")
    assert session.transcript == []
    assert candidate.of("ai-question") == []
    assert candidate.of("interview-paused")[-1] == {"paused": True}

    await orchestrator.hr_resume("iv-1", "hr-1")
    opening = await orchestrator.start_interview("iv-1", candidate)
    assert opening.sequence_number == 0


@pytest.mark.asyncio
async def test_candidate_sees_progress_while_answer_is_processed(orchestrator, join_candidate, long_answer):
    candidate = await join_candidate(orchestrator)
    await orchestrator.start_interview("iv-1", candidate)

    await orchestrator.candidate_audio("iv-1", candidate, _b64(long_answer.encode("utf-8")))
    await orchestrator.candidate_audio_complete("iv-1", candidate)

    assert candidate.of("ai-thinking") == [{"status": "transcribing"}, {"status": "analyzing"}]
    names = candidate.names()
    transcribing = names.index("ai-thinking")
    analyzing = names.index("ai-thinking", transcribing + 1)
    last_question = max(index for index, name in enumerate(names) if name == "ai-question")
    assert transcribing < names.index("transcription") < analyzing < last_question
