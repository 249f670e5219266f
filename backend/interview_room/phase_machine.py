"""
Phase progression for one interview.

Pure decision logic over candidate turn counts; no I/O and no session access.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.config import MAX_CANDIDATE_TURNS, PHASE_THRESHOLDS
from core.state import PHASES

LAST_PHASE_INDEX = len(PHASES) - 1

REASON_PHASES_COMPLETE = "phases_complete"
REASON_SAFETY_CAP = "safety_cap"
REASON_HR_END = "hr_end"
REASON_CANDIDATE_END = "candidate_end"


@dataclass(frozen=True)
class PhaseRules:
    thresholds: tuple[int, ...] = PHASE_THRESHOLDS
    max_candidate_turns: int = MAX_CANDIDATE_TURNS

    def threshold_for(self, phase_index: int) -> int:
        if not self.thresholds:
            return 3
        index = min(max(0, phase_index), len(self.thresholds) - 1)
        return max(1, int(self.thresholds[index]))


@dataclass(frozen=True)
class PhaseDecision:
    phase_index: int
    advanced: bool
    terminate: bool
    reason: str | None = None


def evaluate(
    phase_index: int,
    turns_in_phase: int,
    total_candidate_turns: int,
    rules: PhaseRules | None = None,
    hr_end: bool = False,
) -> PhaseDecision:
    """Decide the next phase index and whether the interview is over.

    ``turns_in_phase`` counts candidate turns already recorded in ``phase_index``.
    The returned index is never lower than the input and never past the last phase.
    """
    rules = rules or PhaseRules()
    current = min(max(0, int(phase_index)), LAST_PHASE_INDEX)

    if hr_end:
        return PhaseDecision(phase_index=current, advanced=False, terminate=True, reason=REASON_HR_END)

    reached_threshold = turns_in_phase >= rules.threshold_for(current)

    if current == LAST_PHASE_INDEX and reached_threshold:
        return PhaseDecision(phase_index=current, advanced=False, terminate=True, reason=REASON_PHASES_COMPLETE)

    if total_candidate_turns >= rules.max_candidate_turns:
        return PhaseDecision(phase_index=current, advanced=False, terminate=True, reason=REASON_SAFETY_CAP)

    if reached_threshold:
        return PhaseDecision(phase_index=min(current + 1, LAST_PHASE_INDEX), advanced=True, terminate=False)

    return PhaseDecision(phase_index=current, advanced=False, terminate=False)
