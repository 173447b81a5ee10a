"""Advisory W-5 letter grade from a class's week of daily checks.

The suggestion is never persisted here; the reviewer records the
authoritative grade and may override it.

Base rule on the daily pass rate: >= 90 is A, 75..89 is B, below 75 is C.
When weekly item options (W-1..W-4) or failure severities are supplied they
tighten the result:
  - a serious daily failure, or any W-1..W-4 answered "gte2", forces C;
  - a moderate daily failure, or any W-1..W-4 answered "1", caps at B;
  - fewer than four answered W-1..W-4 items lowers confidence one level.
"""

import enum
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from app.models.check import Severity, WEEKLY_OPTION_CODES
from app.services.rate_service import compute_rate

GRADE_A_MIN_RATE = 90
GRADE_B_MIN_RATE = 75
LOW_SAMPLE_TOTAL = 10
MEDIUM_SAMPLE_TOTAL = 20

OPTION_NONE = "0"
OPTION_ONE = "1"
OPTION_GTE2 = "gte2"


class Confidence(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class GradeReason(str, enum.Enum):
    """Stable reason codes; the client localizes them."""
    HIGH_PASS_RATE = "high_pass_rate"
    MODERATE_PASS_RATE = "moderate_pass_rate"
    LOW_PASS_RATE = "low_pass_rate"
    SERIOUS_FAILURE = "serious_failure"
    MODERATE_FAILURE = "moderate_failure"
    WEEKLY_ITEM_SEVERE = "weekly_item_severe"
    WEEKLY_ITEM_MINOR = "weekly_item_minor"
    WEEKLY_ITEMS_INCOMPLETE = "weekly_items_incomplete"
    INSUFFICIENT_SAMPLE = "insufficient_sample"


@dataclass(frozen=True)
class GradeSuggestion:
    grade: str
    confidence: str
    rate: int
    reasons: list[str] = field(default_factory=list)

    @property
    def reason(self) -> str:
        return self.reasons[0]


_LOWER = {
    Confidence.HIGH: Confidence.MEDIUM,
    Confidence.MEDIUM: Confidence.LOW,
    Confidence.LOW: Confidence.LOW,
}


def sample_confidence(total: int) -> Confidence:
    if total < LOW_SAMPLE_TOTAL:
        return Confidence.LOW
    if total < MEDIUM_SAMPLE_TOTAL:
        return Confidence.MEDIUM
    return Confidence.HIGH


def rate_grade(rate: int) -> tuple[str, GradeReason]:
    if rate >= GRADE_A_MIN_RATE:
        return "A", GradeReason.HIGH_PASS_RATE
    if rate >= GRADE_B_MIN_RATE:
        return "B", GradeReason.MODERATE_PASS_RATE
    return "C", GradeReason.LOW_PASS_RATE


def suggest_weekly_grade(
    passed: int,
    total: int,
    weekly_options: Mapping[str, str | None] | None = None,
    serious_failures: int = 0,
    moderate_failures: int = 0,
) -> GradeSuggestion:
    """Suggest a grade from pass counts and optional weekly evidence.

    `weekly_options` maps item codes (W-1..W-4) to the recorded option value;
    pass None to judge on the daily pass rate alone.
    """
    rate = compute_rate(passed, total)
    grade, base_reason = rate_grade(rate)

    confidence = sample_confidence(total)
    reasons: list[GradeReason] = []
    if confidence == Confidence.LOW:
        reasons.append(GradeReason.INSUFFICIENT_SAMPLE)

    severe: list[GradeReason] = []
    minor: list[GradeReason] = []

    if serious_failures > 0:
        severe.append(GradeReason.SERIOUS_FAILURE)
    if moderate_failures > 0:
        minor.append(GradeReason.MODERATE_FAILURE)

    if weekly_options is not None:
        answered = [
            weekly_options.get(code) for code in WEEKLY_OPTION_CODES
            if weekly_options.get(code) is not None
        ]
        if OPTION_GTE2 in answered:
            severe.append(GradeReason.WEEKLY_ITEM_SEVERE)
        if OPTION_ONE in answered:
            minor.append(GradeReason.WEEKLY_ITEM_MINOR)
        if len(answered) < len(WEEKLY_OPTION_CODES):
            confidence = _LOWER[confidence]
            reasons.append(GradeReason.WEEKLY_ITEMS_INCOMPLETE)

    if severe:
        grade = "C"
        lead = severe + ([base_reason] if base_reason == GradeReason.LOW_PASS_RATE else [])
    elif minor and grade == "A":
        grade = "B"
        lead = minor
    else:
        lead = [base_reason] + minor

    return GradeSuggestion(
        grade=grade,
        confidence=confidence.value,
        rate=rate,
        reasons=[r.value for r in lead + reasons],
    )


def count_failures(severities: Sequence[tuple[bool | None, str | None]]) -> tuple[int, int]:
    """(serious, moderate) counts among failed records given (passed, severity) pairs."""
    serious = sum(1 for p, s in severities if p is False and s == Severity.SERIOUS.value)
    moderate = sum(1 for p, s in severities if p is False and s == Severity.MODERATE.value)
    return serious, moderate
