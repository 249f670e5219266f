import asyncio
import os
import sys
import time
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("QA_MODE", "true")

from interview_room.collaborators.base import Collaborators, InterviewContext  # noqa: E402
from interview_room.collaborators.offline import (  # noqa: E402
    QAInterviewer,
    QAMacroAssessor,
    QAQuickAssessor,
    QAReportSynthesizer,
    QASynthesizer,
    QATranscriber,
)
from interview_room.collaborators.persistence import MemoryPersistence, StaticContextProvider  # noqa: E402
from interview_room.invites import InviteVerifier, issue_invite  # noqa: E402
from interview_room.orchestrator import InterviewOrchestrator  # noqa: E402
from interview_room.phase_machine import PhaseRules  # noqa: E402
from interview_room.policy import ReassurancePolicy  # noqa: E402

INVITE_SECRET = "pytest-invite-secret"
LONG_ANSWER = "I led the migration of our payments service from a monolith to three smaller services over two quarters"


class FakeConnection:
    def __init__(self, name: str = "conn"):
        self.connection_id = name
        self.events: list[tuple[str, dict]] = []

    async def send(self, event: str, payload: dict) -> None:
        await asyncio.sleep(0)
        self.events.append((event, dict(payload)))

    def of(self, event: str) -> list[dict]:
        return [payload for name, payload in self.events if name == event]

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENV", "development")
    monkeypatch.setenv("QA_MODE", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")


@pytest.fixture
def connection():
    def _make(name: str = "conn") -> FakeConnection:
        return FakeConnection(name)

    return _make


@pytest.fixture
def persistence() -> MemoryPersistence:
    return MemoryPersistence()


@pytest.fixture
def interview_context() -> InterviewContext:
    return InterviewContext(
        interview_id="iv-1",
        language="en",
        job={"title": "Backend Engineer", "company_name": "Acme"},
        candidate={"full_name": "Dana", "resume_text": "Python, Go, payments platform lead"},
    )


@pytest.fixture
def collaborators(persistence, interview_context) -> Collaborators:
    return Collaborators(
        transcriber=QATranscriber(),
        interviewer=QAInterviewer(),
        synthesizer=QASynthesizer(),
        quick_assessor=QAQuickAssessor(),
        macro_assessor=QAMacroAssessor(),
        report_synthesizer=QAReportSynthesizer(),
        persistence=persistence,
        context_provider=StaticContextProvider({"iv-1": interview_context}),
    )


@pytest.fixture
def invite():
    def _issue(interview_id: str = "iv-1", ttl_sec: int = 3600, **claims) -> str:
        return issue_invite(interview_id, INVITE_SECRET, int(time.time() + ttl_sec), **claims)

    return _issue


@pytest.fixture
def build_orchestrator(collaborators):
    def _build(collaborators_override: Collaborators | None = None, **overrides) -> InterviewOrchestrator:
        kwargs = {
            "invite_verifier": InviteVerifier(secret=INVITE_SECRET),
            "policy": ReassurancePolicy(probability=0.0),
            "rules": PhaseRules(thresholds=(3, 3, 3, 3, 2), max_candidate_turns=20),
            "timeout_sec": 2.0,
        }
        kwargs.update(overrides)
        return InterviewOrchestrator(collaborators_override or collaborators, **kwargs)

    return _build


@pytest.fixture
def orchestrator(build_orchestrator) -> InterviewOrchestrator:
    return build_orchestrator()


@pytest.fixture
def join_candidate(invite):
    async def _join(orchestrator: InterviewOrchestrator, interview_id: str = "iv-1", conn: FakeConnection | None = None):
        conn = conn or FakeConnection("candidate")
        await orchestrator.join_candidate(interview_id, "cand-1", invite(interview_id), conn)
        return conn

    return _join


@pytest.fixture
def long_answer() -> str:
    return LONG_ANSWER
