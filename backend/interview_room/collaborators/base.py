from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol


@dataclass
class InterviewContext:
    interview_id: str
    language: str = "en"
    duration_minutes: int = 15
    job: dict = field(default_factory=dict)
    candidate: dict = field(default_factory=dict)
    rubric: dict = field(default_factory=dict)

    @property
    def cv_text(self) -> str:
        return str(self.candidate.get("resume_text") or "")


class Transcriber(Protocol):
    async def transcribe(self, audio: bytes, language_hint: str | None = None) -> str:
        ...


class Interviewer(Protocol):
    async def next_utterance(self, context: dict) -> str:
        ...

    async def opening(self, context: InterviewContext) -> str:
        ...

    async def closing(self, language: str) -> str:
        ...


class Synthesizer(Protocol):
    async def speak(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        ...


class QuickAssessor(Protocol):
    async def stress(self, text: str) -> dict:
        ...

    async def authenticity(self, question: str, response: str) -> dict:
        ...

    async def reassurance(self, language: str) -> str:
        ...


class MacroAssessor(Protocol):
    async def consistency(self, transcript: list[dict], cv_text: str) -> dict:
        ...

    async def authenticity(self, transcript: list[dict], cv_text: str) -> dict:
        ...

    async def stress(self, transcript: list[dict], cv_text: str) -> dict:
        ...


class ReportSynthesizer(Protocol):
    async def generate(self, full_context: dict) -> dict:
        ...


class Persistence(Protocol):
    async def append_turn(self, interview_id: str, turn: dict) -> None:
        ...

    async def finalize(self, interview_id: str, result: dict) -> None:
        ...

    async def log_observation(self, interview_id: str, kind: str, payload: dict) -> None:
        ...

    async def log_observer(self, interview_id: str, record: dict) -> None:
        ...

    async def save_note(self, interview_id: str, hr_user_id: str, note: str) -> None:
        ...

    async def update_live_state(self, interview_id: str, state: dict) -> None:
        ...

    async def load_session(self, interview_id: str) -> dict | None:
        ...


class ContextProvider(Protocol):
    async def load(self, interview_id: str) -> InterviewContext:
        ...


@dataclass
class Collaborators:
    transcriber: Transcriber
    interviewer: Interviewer
    synthesizer: Synthesizer
    quick_assessor: QuickAssessor
    macro_assessor: MacroAssessor
    report_synthesizer: ReportSynthesizer
    persistence: Persistence
    context_provider: ContextProvider
