"""
Deterministic collaborators for QA_MODE and local smoke runs.

No network access. Transcription treats the audio payload as UTF-8 text, which lets
ws smoke clients send readable "audio".
"""

from __future__ import annotations

from interview_room.collaborators import prompts
from interview_room.collaborators.agents import stress_indicators, stress_level_for
from interview_room.collaborators.base import InterviewContext

QA_QUESTIONS = {
    "warmup": "Could you walk me through your background and what drew you to this role?",
    "claim_verification": "Tell me about a project on your CV where you made the key technical decision.",
    "scenario": "Imagine production latency doubles after a deploy. How would you approach it?",
    "depth": "Why did you choose that approach, and what would change if traffic grew tenfold?",
    "reflection": "Looking back, what would you do differently and what did you learn?",
}


class QATranscriber:
    async def transcribe(self, audio: bytes, language_hint: str | None = None) -> str:
        return bytes(audio or b"").decode("utf-8", errors="ignore").strip()


class QAInterviewer:
    async def next_utterance(self, context: dict) -> str:
        phase = str(context.get("phase") or "warmup")
        asked = sum(1 for turn in context.get("transcript") or [] if turn.get("speaker") == "ai")
        return f"{QA_QUESTIONS.get(phase, QA_QUESTIONS['warmup'])} ({asked + 1})"

    async def opening(self, context: InterviewContext) -> str:
        name = str(context.candidate.get("full_name") or "there")
        return (
            f"Hello {name}, thanks for joining. This interview takes about "
            f"{context.duration_minutes} minutes; feel free to think out loud."
        )

    async def closing(self, language: str) -> str:
        return "Thank you for your time. The team will review the interview and you will hear back soon."


class QASynthesizer:
    async def speak(self, text: str, language: str, voice_id: str | None = None) -> bytes:
        return str(text or "").encode("utf-8")


class QAQuickAssessor:
    async def stress(self, text: str) -> dict:
        indicators = stress_indicators(text)
        return {"level": stress_level_for(indicators).value, "indicators": indicators}

    async def authenticity(self, question: str, response: str) -> dict:
        words = len(str(response or "").split())
        return {"quality": "good" if words >= 25 else "fair", "note": "qa heuristic"}

    async def reassurance(self, language: str) -> str:
        lines = prompts.REASSURANCE_LINES.get(str(language or "en").lower()) or prompts.REASSURANCE_LINES["en"]
        return lines[0]


class QAMacroAssessor:
    async def consistency(self, transcript: list[dict], cv_text: str) -> dict:
        return {"cv_consistency_score": 0.5 if cv_text else None, "notes": ["qa mode"]}

    async def authenticity(self, transcript: list[dict], cv_text: str) -> dict:
        return {"authenticity_risk": "low", "confidence": "low", "signals": []}

    async def stress(self, transcript: list[dict], cv_text: str) -> dict:
        return {"stress_level": "low", "confidence": "low", "recommendation": "continue"}


class QAReportSynthesizer:
    async def generate(self, full_context: dict) -> dict:
        transcript = full_context.get("transcript") or []
        answers = [turn for turn in transcript if turn.get("speaker") == "candidate"]
        score = round(min(1.0, len(answers) / 14.0), 2)
        return {
            "overall_fit": "fair",
            "overall_score": score,
            "summary": f"QA report over {len(answers)} candidate answers.",
            "strengths": [],
            "weaknesses": [],
            "recommendation": "needs_further_evaluation",
            "termination_reason": full_context.get("termination_reason"),
        }
