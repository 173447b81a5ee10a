"""Pass-rate aggregation over check records.

Every function is pure. A record whose `passed` is None counts toward
`total` only; callers that want fail rates over judged records pass the
output of `judged()`.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from app.core.utils import round_half_up
from app.services.record_store import RecordRow


@dataclass(frozen=True)
class AggregateRate:
    total: int = 0
    passed: int = 0
    rate: int = 0


@dataclass(frozen=True)
class ItemFailRate:
    key: str
    title: str
    code: str | None
    total: int
    failed: int
    fail_rate: int


def compute_rate(passed: int, total: int) -> int:
    """Percentage 0..100, half-up rounded; 0 when total is 0."""
    if total <= 0:
        return 0
    return round_half_up(passed / total * 100)


def judged(records: Iterable[RecordRow]) -> list[RecordRow]:
    return [r for r in records if r.passed is not None]


def _aggregate(records: Iterable[RecordRow]) -> AggregateRate:
    total = 0
    passed = 0
    for r in records:
        total += 1
        if r.passed is True:
            passed += 1
    return AggregateRate(total=total, passed=passed, rate=compute_rate(passed, total))


def _group_rates(groups: dict) -> dict:
    return {key: _aggregate(rows) for key, rows in groups.items()}


def overall_rate(records: Iterable[RecordRow]) -> AggregateRate:
    return _aggregate(records)


def class_rates(records: Iterable[RecordRow]) -> dict[int, AggregateRate]:
    groups: dict[int, list[RecordRow]] = {}
    for r in records:
        groups.setdefault(r.class_id, []).append(r)
    return _group_rates(groups)


def grade_rates(records: Iterable[RecordRow], classes_by_id: Mapping) -> dict[int, AggregateRate]:
    """Rates keyed by grade number; records of unknown classes are skipped."""
    groups: dict[int, list[RecordRow]] = {}
    for r in records:
        cls = classes_by_id.get(r.class_id)
        if cls is None:
            continue
        groups.setdefault(cls.grade, []).append(r)
    return _group_rates(groups)


def per_item_fail_rates(records: Iterable[RecordRow]) -> dict[str, ItemFailRate]:
    """Fail rate per check item keyed by `code or check_item_id`.

    On key collisions the first-seen title and code are kept.
    """
    stats: dict[str, dict] = {}
    for r in records:
        key = r.item_key
        entry = stats.get(key)
        if entry is None:
            entry = {"title": r.item_title, "code": r.item_code, "total": 0, "failed": 0}
            stats[key] = entry
        entry["total"] += 1
        if r.passed is False:
            entry["failed"] += 1

    return {
        key: ItemFailRate(
            key=key,
            title=s["title"],
            code=s["code"],
            total=s["total"],
            failed=s["failed"],
            fail_rate=compute_rate(s["failed"], s["total"]),
        )
        for key, s in stats.items()
    }


def daily_trend(
    records: Iterable[RecordRow],
    dates: list[str],
    classes_by_id: Mapping,
    grades: list[int],
) -> list[dict]:
    """Per-day pass rate for each grade plus the overall rate.

    Returns one dict per date, in the order given:
    {"date": ..., "grade_rates": {grade: rate}, "overall_rate": rate}.
    """
    by_date: dict[str, list[RecordRow]] = {d: [] for d in dates}
    for r in records:
        if r.date in by_date:
            by_date[r.date].append(r)

    points = []
    for d in dates:
        rows = by_date[d]
        per_grade = grade_rates(rows, classes_by_id)
        points.append({
            "date": d,
            "grade_rates": {g: per_grade.get(g, AggregateRate()).rate for g in grades},
            "overall_rate": overall_rate(rows).rate,
        })
    return points
