from interview_room.collaborators.base import (
    Collaborators,
    ContextProvider,
    InterviewContext,
    Interviewer,
    MacroAssessor,
    Persistence,
    QuickAssessor,
    ReportSynthesizer,
    Synthesizer,
    Transcriber,
)

__all__ = [
    "Collaborators",
    "ContextProvider",
    "InterviewContext",
    "Interviewer",
    "MacroAssessor",
    "Persistence",
    "QuickAssessor",
    "ReportSynthesizer",
    "Synthesizer",
    "Transcriber",
]
