"""Weekly letter-grade streaks and improvement transitions."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from app.core.utils import parse_date
from app.models.check import WEEKLY_GRADES
from app.services.record_store import RecordRow

# A single good or bad week is not yet a trend
STREAK_THRESHOLD = 2
DEFAULT_LOOKBACK_WEEKS = 4

GRADE_ORDINAL = {"C": 1, "B": 2, "A": 3}


@dataclass(frozen=True)
class GradeTransition:
    from_grade: str
    to_grade: str


@dataclass(frozen=True)
class StreakResult:
    consecutive_a: int = 0
    consecutive_c: int = 0
    last_transition: GradeTransition | None = None

    @property
    def is_excellent(self) -> bool:
        return self.consecutive_a >= STREAK_THRESHOLD

    @property
    def is_warning(self) -> bool:
        return self.consecutive_c >= STREAK_THRESHOLD


def _trailing(grades: list[str], target: str) -> int:
    count = 0
    for g in reversed(grades):
        if g != target:
            break
        count += 1
    return count


def detect_streak(grades: list[str]) -> StreakResult:
    """Trailing A/C streaks and the latest upward step of a grade sequence.

    `grades` is chronological, oldest first. Fewer than two entries yield an
    empty result.
    """
    if len(grades) < 2:
        return StreakResult()

    transition = None
    prev, latest = grades[-2], grades[-1]
    if GRADE_ORDINAL.get(latest, 0) > GRADE_ORDINAL.get(prev, 0) and prev in GRADE_ORDINAL:
        transition = GradeTransition(from_grade=prev, to_grade=latest)

    return StreakResult(
        consecutive_a=_trailing(grades, "A"),
        consecutive_c=_trailing(grades, "C"),
        last_transition=transition,
    )


def _week_key(day: str) -> tuple[int, int]:
    iso = parse_date(day).isocalendar()
    return iso[0], iso[1]


def grade_histories(
    weekly_records: Iterable[RecordRow],
    lookback: int = DEFAULT_LOOKBACK_WEEKS,
) -> dict[int, list[str]]:
    """Chronological W-5 letter grades per class, one per ISO week.

    When a class has several grade records in one week the latest date
    wins. Only the last `lookback` weeks that carry a grade are kept.
    """
    per_class: dict[int, dict[tuple[int, int], tuple[str, str]]] = {}
    for r in weekly_records:
        if r.option_value not in WEEKLY_GRADES:
            continue
        weeks = per_class.setdefault(r.class_id, {})
        key = _week_key(r.date)
        existing = weeks.get(key)
        if existing is None or r.date >= existing[0]:
            weeks[key] = (r.date, r.option_value)

    histories = {}
    for class_id, weeks in per_class.items():
        ordered = [grade for _, (_, grade) in sorted(weeks.items())]
        histories[class_id] = ordered[-lookback:] if lookback > 0 else ordered
    return histories


def classify_classes(
    histories: Mapping[int, list[str]],
    classes_by_id: Mapping,
    class_failed_items: Mapping[int, list] | None = None,
) -> dict[str, list[dict]]:
    """Split classes into excellent / warning / improved lists.

    Lists are ordered by grade then section so output is stable.
    """
    class_failed_items = class_failed_items or {}
    excellent: list[dict] = []
    warning: list[dict] = []
    improved: list[dict] = []

    def order(class_id: int):
        cls = classes_by_id.get(class_id)
        return (cls.grade, cls.section, class_id) if cls else (0, 0, class_id)

    for class_id in sorted(histories, key=order):
        cls = classes_by_id.get(class_id)
        if cls is None:
            continue
        streak = detect_streak(histories[class_id])
        base = {"class_id": cls.id, "name": cls.name, "grade": cls.grade}
        if streak.is_excellent:
            excellent.append({**base, "weeks": streak.consecutive_a})
        if streak.is_warning:
            warning.append({
                **base,
                "weeks": streak.consecutive_c,
                "failed_items": list(class_failed_items.get(class_id, []))[:3],
            })
        if streak.last_transition:
            improved.append({
                **base,
                "from_grade": streak.last_transition.from_grade,
                "to_grade": streak.last_transition.to_grade,
            })

    return {"excellent": excellent, "warning": warning, "improved": improved}


def latest_grade(history: list[str]) -> str | None:
    return history[-1] if history else None
