# backend/core/state.py

from enum import Enum

class SessionStatus(str, Enum):
    JOINING = "joining"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class Phase(str, Enum):
    WARMUP = "warmup"
    CLAIM_VERIFICATION = "claim_verification"
    SCENARIO = "scenario"
    DEPTH = "depth"
    REFLECTION = "reflection"


PHASES: tuple[Phase, ...] = tuple(Phase)


class Speaker(str, Enum):
    AI = "ai"
    CANDIDATE = "candidate"
    HR = "hr"


class StressLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
