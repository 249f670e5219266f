LANGUAGE_NAMES = {
    "en": "English",
    "es": "Spanish",
    "ar": "Arabic",
    "hi": "Hindi",
    "fr": "French",
}

INTERVIEWER_SYSTEM_PROMPT = """
You are a professional interviewer conducting a structured job interview on behalf of a company.

Rules:
- Ask ONE question at a time.
- Stay calm, respectful, neutral and professional.
- Prefer scenario and reasoning questions over factual recall.
- Do not give hints or answers.
- Never mention scoring, evaluation or detection.
"""

ANALYST_SYSTEM_PROMPT = """
You are an interview analyst. Assess response quality objectively and constructively.
Return STRICT JSON only.
"""

PHASE_GUIDANCE = {
    "warmup": "Ask open background questions that help the candidate relax.",
    "claim_verification": "Dig into specific experiences and skills the candidate claims: decisions made, outcomes.",
    "scenario": "Present a realistic scenario for this role and ask how they would approach it.",
    "depth": "Ask why and what-if questions that test the reasoning behind earlier answers.",
    "reflection": "Ask about learning, growth and what they would do differently.",
}

REASSURANCE_LINES = {
    "en": [
        "Take your time, there's no rush. I'm more interested in your thinking than a perfect answer.",
        "No worries at all. Let's approach this from a different angle.",
        "That's completely fine. These questions can be challenging. Let me ask about something else.",
    ],
    "es": [
        "Tómate tu tiempo, no hay prisa. Me interesa más tu forma de pensar que una respuesta perfecta.",
        "No te preocupes. Veámoslo desde otro ángulo.",
        "Está perfectamente bien. Estas preguntas pueden ser difíciles. Déjame preguntarte sobre otra cosa.",
    ],
}


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(str(language or "en").lower(), "English")


def _format_turns(transcript: list[dict], limit: int) -> str:
    lines = []
    for turn in transcript[-limit:]:
        speaker = "You" if turn.get("speaker") == "ai" else ("Recruiter" if turn.get("speaker") == "hr" else "Candidate")
        lines.append(f"{speaker}: {turn.get('text', '')}")
    return "\n".join(lines)


def build_next_question_prompt(context: dict) -> str:
    job = context.get("job") or {}
    rubric = context.get("rubric") or {}
    candidate = context.get("candidate") or {}
    phase = str(context.get("phase") or "warmup")

    prompt = f"You are interviewing for: {job.get('title', 'the open role')}\n"
    prompt += f"Language: speak in {language_name(context.get('language', 'en'))}\n"
    prompt += f"Current phase: {phase}\n{PHASE_GUIDANCE.get(phase, '')}\n\n"

    if phase == "claim_verification" and candidate.get("resume_text"):
        prompt += f"Candidate background: {str(candidate['resume_text'])[:500]}\n\n"

    bank = (rubric.get("question_bank") or {}).get(phase) or []
    if bank:
        prompt += "Suggested questions for this phase:\n"
        prompt += "\n".join(f"{i + 1}. {q}" for i, q in enumerate(bank))
        prompt += "\n\n"

    transcript = context.get("transcript") or []
    if transcript:
        prompt += f"Conversation so far:\n{_format_turns(transcript, 6)}\n\n"

    if context.get("stress_level") == "high":
        prompt += "NOTE: the candidate appears stressed. Slow down and do not raise difficulty.\n\n"

    prompt += "Generate the next question. Conversational, natural, ONE question only."
    return prompt


def build_opening_prompt(job_title: str, candidate_name: str, duration_minutes: int, language: str) -> str:
    return f"""
You are starting an interview for the position: {job_title or 'the open role'}
Language: {language_name(language)}

Write a warm, professional opening (2-3 sentences) that welcomes {candidate_name or 'the candidate'} by name,
says the interview takes about {duration_minutes} minutes, and invites them to think out loud.
"""


def build_closing_prompt(language: str) -> str:
    return f"""
Write a professional closing statement in {language_name(language)} (1-2 sentences) that thanks the candidate,
says the company will review the interview and that they will hear back soon.
"""


def build_authenticity_quick_prompt(question: str, response: str) -> str:
    return f"""
Question: "{question}"
Response: "{response}"

Assess response quality. Return JSON:
{{"quality": "poor|fair|good|excellent", "specificity": "generic|specific",
  "reasoning_shown": true, "personal_detail": true, "note": "brief observation"}}
"""


def candidate_responses(transcript: list[dict], limit: int) -> str:
    responses = [t for t in transcript if t.get("speaker") == "candidate"][-limit:]
    return "\n\n".join(f"Response {i + 1}: {t.get('text', '')}" for i, t in enumerate(responses))


def build_consistency_prompt(transcript: list[dict], cv_text: str) -> str:
    return f"""
Analyze this interview for consistency with the candidate's CV.

CV:
{cv_text[:2000]}

Candidate responses:
{candidate_responses(transcript, 15)}

Return JSON: {{"cv_consistency_score": 0.0-1.0, "consistencies": [], "inconsistencies": [],
"notes": [], "red_flags": []}}
"""


def build_authenticity_prompt(transcript: list[dict]) -> str:
    return f"""
Analyze these interview responses for quality and authenticity signals.

{candidate_responses(transcript, 10)}

Return JSON: {{"authenticity_risk": "low|medium|high", "confidence": "low|medium|high",
"signals": [], "response_quality": {{}}, "notes": []}}
"""


def build_stress_prompt(transcript: list[dict]) -> str:
    return f"""
Analyze these recent candidate responses for stress indicators.

{candidate_responses(transcript, 5)}

Return JSON: {{"stress_level": "low|medium|high", "confidence": "low|medium|high",
"indicators": [], "recommendation": "continue|slow_down|reassure|break"}}
"""


def build_report_prompt(full_context: dict) -> str:
    job = full_context.get("job") or {}
    candidate = full_context.get("candidate") or {}
    return f"""
Generate a structured interview report.

JOB: {job.get('title', 'Not specified')} - {job.get('seniority_level', 'Not specified')}
CANDIDATE: {candidate.get('full_name', 'Candidate')}

TRANSCRIPT:
{_format_turns(full_context.get('transcript') or [], 40)}

MICRO ASSESSMENTS: {full_context.get('micro_assessments')}
CONSISTENCY ANALYSIS: {full_context.get('consistency_analysis')}
AUTHENTICITY ANALYSIS: {full_context.get('authenticity_analysis')}
STRESS ASSESSMENT: {full_context.get('stress_assessment')}
RECRUITER OBSERVERS: {full_context.get('observers')}

Return JSON with: overall_fit (poor|fair|good|excellent), overall_score (0.0-1.0), summary,
strengths [], weaknesses [], competency_scores {{}}, recommendation
(proceed_with_enthusiasm|proceed|needs_further_evaluation|not_recommended), reasoning, next_steps.
Be balanced, specific and evidence-based.
"""
