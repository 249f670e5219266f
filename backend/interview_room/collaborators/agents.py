from __future__ import annotations

import logging
import random

from core.config import ASSESSMENT_MODEL, INTERVIEWER_MODEL
from core.state import StressLevel
from interview_room.collaborators import prompts
from interview_room.collaborators.base import InterviewContext
from interview_room.collaborators.llm import chat_json, chat_text

logger = logging.getLogger("interview_room.collaborators.agents")

UNCERTAINTY_PHRASES = ("i don't know", "i dont know", "not sure")


def stress_indicators(text: str) -> list[str]:
    normalized = str(text or "").strip().lower()
    word_count = len(normalized.split())
    indicators: list[str] = []
    if word_count < 10:
        indicators.append("Very brief response")
    if word_count > 200:
        indicators.append("Unusually long response")
    if any(phrase in normalized for phrase in UNCERTAINTY_PHRASES):
        indicators.append("Expressions of uncertainty")
    if "sorry" in normalized and "sorry, could you" not in normalized:
        indicators.append("Apologetic language")
    return indicators


def stress_level_for(indicators: list[str]) -> StressLevel:
    if len(indicators) >= 3:
        return StressLevel.HIGH
    if len(indicators) >= 2:
        return StressLevel.MEDIUM
    return StressLevel.LOW


class OpenAIInterviewer:
    def __init__(self, model: str = INTERVIEWER_MODEL):
        self.model = model

    async def next_utterance(self, context: dict) -> str:
        return await chat_text(
            "interviewer",
            prompts.INTERVIEWER_SYSTEM_PROMPT,
            prompts.build_next_question_prompt(context),
            model=self.model,
            temperature=0.7,
            max_tokens=300,
        )

    async def opening(self, context: InterviewContext) -> str:
        return await chat_text(
            "interviewer",
            prompts.INTERVIEWER_SYSTEM_PROMPT,
            prompts.build_opening_prompt(
                job_title=str(context.job.get("title") or ""),
                candidate_name=str(context.candidate.get("full_name") or ""),
                duration_minutes=context.duration_minutes,
                language=context.language,
            ),
            model=self.model,
            temperature=0.8,
            max_tokens=200,
        )

    async def closing(self, language: str) -> str:
        return await chat_text(
            "interviewer",
            prompts.INTERVIEWER_SYSTEM_PROMPT,
            prompts.build_closing_prompt(language),
            model=self.model,
            temperature=0.7,
            max_tokens=150,
        )


class HeuristicQuickAssessor:
    """Stress from word-level heuristics, authenticity from a short model call."""

    def __init__(self, model: str = ASSESSMENT_MODEL, rng: random.Random | None = None):
        self.model = model
        self._rng = rng or random.Random()

    async def stress(self, text: str) -> dict:
        indicators = stress_indicators(text)
        level = stress_level_for(indicators)
        return {
            "level": level.value,
            "indicators": indicators,
            "recommendation": "continue" if level == StressLevel.LOW else "reassure",
        }

    async def authenticity(self, question: str, response: str) -> dict:
        return await chat_json(
            "quick_authenticity",
            prompts.ANALYST_SYSTEM_PROMPT,
            prompts.build_authenticity_quick_prompt(question, response),
            model=self.model,
            temperature=0.3,
            max_tokens=200,
        )

    async def reassurance(self, language: str) -> str:
        lines = prompts.REASSURANCE_LINES.get(str(language or "en").lower()) or prompts.REASSURANCE_LINES["en"]
        return self._rng.choice(lines)


class OpenAIMacroAssessor:
    min_turns = 4

    def __init__(self, model: str = ASSESSMENT_MODEL):
        self.model = model

    async def consistency(self, transcript: list[dict], cv_text: str) -> dict:
        if not cv_text or len(transcript) < self.min_turns:
            return {"cv_consistency_score": None, "notes": ["Insufficient data for consistency analysis"]}
        return await chat_json(
            "consistency_checker",
            prompts.ANALYST_SYSTEM_PROMPT,
            prompts.build_consistency_prompt(transcript, cv_text),
            model=self.model,
            max_tokens=2000,
        )

    async def authenticity(self, transcript: list[dict], cv_text: str) -> dict:
        if len(transcript) < self.min_turns:
            return {"authenticity_risk": "low", "confidence": "low", "signals": ["Insufficient responses for analysis"]}
        return await chat_json(
            "authenticity_analyzer",
            prompts.ANALYST_SYSTEM_PROMPT,
            prompts.build_authenticity_prompt(transcript),
            model=self.model,
            max_tokens=1500,
        )

    async def stress(self, transcript: list[dict], cv_text: str) -> dict:
        if len(transcript) < 3:
            return {"stress_level": "low", "confidence": "low", "recommendation": "continue"}
        return await chat_json(
            "stress_assessor",
            prompts.ANALYST_SYSTEM_PROMPT,
            prompts.build_stress_prompt(transcript),
            model=self.model,
        )


class OpenAIReportSynthesizer:
    def __init__(self, model: str = ASSESSMENT_MODEL):
        self.model = model

    async def generate(self, full_context: dict) -> dict:
        return await chat_json(
            "report_synthesizer",
            prompts.ANALYST_SYSTEM_PROMPT,
            prompts.build_report_prompt(full_context),
            model=self.model,
            temperature=0.4,
            max_tokens=3000,
        )
