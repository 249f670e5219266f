from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str
    sessions: int


class TurnOut(BaseModel):
    speaker: str
    text: str
    sequenceNumber: int
    phase: str
    timestamp: float


class ObserverOut(BaseModel):
    observerId: str
    name: str
    visible: bool
    audioEnabled: bool
    videoEnabled: bool
    joinedAt: float


class InterviewStateResponse(BaseModel):
    interviewId: str
    status: str
    phase: str
    phaseIndex: int
    transcript: list[TurnOut]
    isPaused: bool
    stressLevel: str
    language: str
    startedAt: float
    candidateConnected: bool
    observers: list[ObserverOut]
