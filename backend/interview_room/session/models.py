from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any, Awaitable, Optional, Protocol

from core.state import PHASES, Phase, SessionStatus, Speaker, StressLevel
from interview_room.session.actor import SessionActor


class Connection(Protocol):
    """One live socket. The gateway wraps the websocket; tests use fakes."""

    connection_id: str

    def send(self, event: str, payload: dict) -> Awaitable[None]:
        ...


@dataclass
class Turn:
    speaker: Speaker
    text: str
    sequence_number: int
    phase: Phase
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "speaker": self.speaker.value,
            "text": self.text,
            "sequenceNumber": self.sequence_number,
            "phase": self.phase.value,
            "timestamp": self.timestamp,
        }


@dataclass
class Observer:
    observer_id: str
    name: str
    connection: Optional[Connection] = None
    visible: bool = False
    audio_enabled: bool = False
    video_enabled: bool = False
    joined_at: float = field(default_factory=time.time)
    spoke: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "observerId": self.observer_id,
            "name": self.name,
            "visible": self.visible,
            "audioEnabled": self.audio_enabled,
            "videoEnabled": self.video_enabled,
            "joinedAt": self.joined_at,
        }

    def log_record(self, left_at: float | None = None) -> dict[str, Any]:
        return {
            "hr_user_id": self.observer_id,
            "hr_name": self.name,
            "joined_at": self.joined_at,
            "left_at": left_at,
            "was_visible": self.visible,
            "spoke_during_interview": self.spoke,
        }


@dataclass
class Session:
    interview_id: str
    status: SessionStatus = SessionStatus.JOINING
    candidate_id: str = ""
    candidate_connection: Optional[Connection] = None
    phase_index: int = 0
    transcript: list[Turn] = field(default_factory=list)
    stress_level: StressLevel = StressLevel.LOW
    observers: dict[str, Observer] = field(default_factory=dict)
    pending_audio: list[bytes] = field(default_factory=list)
    pending_audio_bytes: int = 0
    is_paused: bool = False
    language: str = "en"
    started_at: float = field(default_factory=time.time)
    completed_at: float | None = None
    context: Any = None
    micro_assessments: list[dict] = field(default_factory=list)
    transcribing: bool = False
    finalizing: bool = False
    report: dict | None = None
    actor: SessionActor = field(default_factory=SessionActor, repr=False)

    @property
    def phase(self) -> Phase:
        return PHASES[self.phase_index]

    @property
    def is_completed(self) -> bool:
        return self.status == SessionStatus.COMPLETED or self.finalizing

    def append_turn(self, speaker: Speaker, text: str) -> Turn:
        turn = Turn(
            speaker=speaker,
            text=text,
            sequence_number=len(self.transcript),
            phase=self.phase,
        )
        self.transcript.append(turn)
        return turn

    def candidate_turn_count(self, phase: Phase | None = None) -> int:
        return sum(
            1
            for turn in self.transcript
            if turn.speaker == Speaker.CANDIDATE and (phase is None or turn.phase == phase)
        )

    def last_ai_text(self) -> str:
        for turn in reversed(self.transcript):
            if turn.speaker == Speaker.AI:
                return turn.text
        return ""

    def has_ai_turn(self) -> bool:
        return any(turn.speaker == Speaker.AI for turn in self.transcript)

    def clear_pending_audio(self) -> None:
        self.pending_audio = []
        self.pending_audio_bytes = 0

    def transcript_dicts(self) -> list[dict[str, Any]]:
        return [turn.to_dict() for turn in self.transcript]

    def live_state(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "phaseIndex": self.phase_index,
            "stressLevel": self.stress_level.value,
            "isPaused": self.is_paused,
            "language": self.language,
            "startedAt": self.started_at,
            "completedAt": self.completed_at,
            "updatedAt": time.time(),
        }

    def snapshot(self, include_hidden: bool = False) -> dict[str, Any]:
        """State for clients. Hidden observers are listed only when ``include_hidden`` is set (HR views)."""
        observers = [
            observer.to_dict() for observer in self.observers.values() if include_hidden or observer.visible
        ]
        return {
            "interviewId": self.interview_id,
            "status": self.status.value,
            "phase": self.phase.value,
            "phaseIndex": self.phase_index,
            "transcript": self.transcript_dicts(),
            "isPaused": self.is_paused,
            "stressLevel": self.stress_level.value,
            "language": self.language,
            "startedAt": self.started_at,
            "candidateConnected": self.candidate_connection is not None,
            "observers": observers,
        }
