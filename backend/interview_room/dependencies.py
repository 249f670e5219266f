from __future__ import annotations

import logging
import random

from core.config import DATA_DIR, QA_MODE, REASSURANCE_SEED
from interview_room.collaborators.agents import (
    HeuristicQuickAssessor,
    OpenAIInterviewer,
    OpenAIMacroAssessor,
    OpenAIReportSynthesizer,
)
from interview_room.collaborators.base import Collaborators
from interview_room.collaborators.offline import (
    QAInterviewer,
    QAMacroAssessor,
    QAQuickAssessor,
    QAReportSynthesizer,
    QASynthesizer,
    QATranscriber,
)
from interview_room.collaborators.persistence import (
    FileContextProvider,
    FilePersistence,
    MemoryPersistence,
    StaticContextProvider,
)
from interview_room.collaborators.speech import OpenAISpeechSynthesizer, WhisperTranscriber
from interview_room.invites import InviteVerifier
from interview_room.orchestrator import InterviewOrchestrator
from interview_room.policy import ReassurancePolicy

logger = logging.getLogger("interview_room.dependencies")


class DependencyProvider:
    def __init__(self, qa_mode: bool = QA_MODE):
        self.qa_mode = bool(qa_mode)

    def create_collaborators(self) -> Collaborators:
        if self.qa_mode:
            return Collaborators(
                transcriber=QATranscriber(),
                interviewer=QAInterviewer(),
                synthesizer=QASynthesizer(),
                quick_assessor=QAQuickAssessor(),
                macro_assessor=QAMacroAssessor(),
                report_synthesizer=QAReportSynthesizer(),
                persistence=MemoryPersistence(),
                context_provider=StaticContextProvider(),
            )
        return Collaborators(
            transcriber=WhisperTranscriber(),
            interviewer=OpenAIInterviewer(),
            synthesizer=OpenAISpeechSynthesizer(),
            quick_assessor=HeuristicQuickAssessor(rng=random.Random(REASSURANCE_SEED)),
            macro_assessor=OpenAIMacroAssessor(),
            report_synthesizer=OpenAIReportSynthesizer(),
            persistence=FilePersistence(DATA_DIR),
            context_provider=FileContextProvider(DATA_DIR),
        )

    def create_invite_verifier(self) -> InviteVerifier:
        return InviteVerifier()

    def create_policy(self) -> ReassurancePolicy:
        return ReassurancePolicy()

    def create_orchestrator(self) -> InterviewOrchestrator:
        logger.info("building orchestrator | qa_mode=%s", self.qa_mode)
        return InterviewOrchestrator(
            self.create_collaborators(),
            invite_verifier=self.create_invite_verifier(),
            policy=self.create_policy(),
        )
