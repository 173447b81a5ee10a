"""Rule-based risk analysis over a 30-day window of daily check records.

Produces structured, language-free output: every alert carries a stable
`suggestion_kind` that the presentation layer maps to localized text.
Sorting always ends on a stable key, so identical inputs give identical
output.
"""

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field

from app.core.scope import Role
from app.services.rate_service import (
    AggregateRate,
    ItemFailRate,
    class_rates,
    grade_rates,
    judged,
    overall_rate,
    per_item_fail_rates,
)
from app.services.record_store import RecordRow
from app.services.streak_service import detect_streak

FAIL_RATE_HIGH = 30
FAIL_RATE_MEDIUM = 15
TREND_THRESHOLD = 2
MAX_RISK_ALERTS = 5
MAX_CLASS_FAILED_ITEMS = 3
MAX_WEAK_AREAS = 5
COMPARISON_PERIOD = "30d"


class RiskLevel(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"


class TrendCategory(str, enum.Enum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class SuggestionKind(str, enum.Enum):
    """Stable identifiers for remediation advice."""
    FOCUSED_RECTIFICATION = "focused_rectification"
    ROUTINE_REMINDER = "routine_reminder"


@dataclass(frozen=True)
class AnalysisInputs:
    """Everything the rule engine needs for one scope.

    `records` are DAILY records of the 30-day window, already narrowed to
    the scope's classes. `prev_class_rates` and `histories` are optional
    enrichments for the class ranking.
    """
    records: list[RecordRow] = field(default_factory=list)
    classes_by_id: Mapping = field(default_factory=dict)
    week_rate: int = 0
    prev_week_rate: int = 0
    four_weeks_ago_rate: int = 0
    prev_class_rates: Mapping[int, int] = field(default_factory=dict)
    histories: Mapping[int, list[str]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------

def trend_category(diff: int) -> TrendCategory:
    if diff > TREND_THRESHOLD:
        return TrendCategory.UP
    if diff < -TREND_THRESHOLD:
        return TrendCategory.DOWN
    return TrendCategory.STABLE


def risk_level(fail_rate: int) -> RiskLevel | None:
    if fail_rate > FAIL_RATE_HIGH:
        return RiskLevel.HIGH
    if fail_rate > FAIL_RATE_MEDIUM:
        return RiskLevel.MEDIUM
    return None


def build_trend_data(week_rate: int, prev_week_rate: int, four_weeks_ago_rate: int) -> dict:
    week_diff = week_rate - prev_week_rate
    return {
        "week_rate": week_rate,
        "prev_week_rate": prev_week_rate,
        "four_weeks_ago_rate": four_weeks_ago_rate,
        "week_diff": week_diff,
        "month_diff": week_rate - four_weeks_ago_rate,
        "summary_category": trend_category(week_diff).value,
    }


def _by_fail_rate_desc(stats: list[ItemFailRate]) -> list[ItemFailRate]:
    return sorted(stats, key=lambda s: (-s.fail_rate, s.key))


def build_risk_alerts(item_fail_rates: Mapping[str, ItemFailRate]) -> list[dict]:
    """Alerts for items above the medium threshold; high first, at most five."""
    alerts = []
    for stat in item_fail_rates.values():
        level = risk_level(stat.fail_rate)
        if level is None:
            continue
        alerts.append((level, stat))

    alerts.sort(key=lambda a: (a[0] != RiskLevel.HIGH, -a[1].fail_rate, a[1].key))
    return [
        {
            "key": stat.key,
            "title": stat.title,
            "code": stat.code,
            "fail_rate_percent": stat.fail_rate,
            "failed": stat.failed,
            "total": stat.total,
            "level": level.value,
            "suggestion_kind": (
                SuggestionKind.FOCUSED_RECTIFICATION if level == RiskLevel.HIGH
                else SuggestionKind.ROUTINE_REMINDER
            ).value,
        }
        for level, stat in alerts[:MAX_RISK_ALERTS]
    ]


def build_grade_comparison(records: list[RecordRow], classes_by_id: Mapping) -> dict:
    per_grade = grade_rates(records, classes_by_id)
    return {
        "period": COMPARISON_PERIOD,
        "average": overall_rate(records).rate,
        "grades": [
            {"grade": grade, "rate": per_grade[grade].rate}
            for grade in sorted(per_grade)
        ],
    }


def class_failed_items(records: list[RecordRow]) -> dict[int, list[dict]]:
    """Up to three failing items per class, worst first."""
    per_class: dict[int, list[RecordRow]] = {}
    for r in judged(records):
        per_class.setdefault(r.class_id, []).append(r)

    result = {}
    for class_id, rows in per_class.items():
        stats = [
            s for s in per_item_fail_rates(rows).values()
            if s.fail_rate > FAIL_RATE_MEDIUM
        ]
        result[class_id] = [
            {"code": s.code, "title": s.title, "fail_rate": s.fail_rate}
            for s in _by_fail_rate_desc(stats)[:MAX_CLASS_FAILED_ITEMS]
        ]
    return result


def build_class_entries(
    records: list[RecordRow],
    classes_by_id: Mapping,
    descending: bool,
    prev_class_rates: Mapping[int, int] | None = None,
    histories: Mapping[int, list[str]] | None = None,
) -> list[dict]:
    """Classes with their window rate and worst items.

    Ascending order serves the admin focus list, descending the grade-leader
    ranking. Classes without records report a rate of 0.
    """
    rates = class_rates(records)
    failed = class_failed_items(records)

    entries = []
    for class_id, cls in classes_by_id.items():
        rate = rates.get(class_id, AggregateRate()).rate
        entry = {
            "class_id": class_id,
            "name": cls.name,
            "grade": cls.grade,
            "rate": rate,
            "failed_items": failed.get(class_id, []),
        }
        if prev_class_rates is not None:
            prev = prev_class_rates.get(class_id)
            entry["prev_rate"] = prev
            entry["trend"] = (
                trend_category(rate - prev).value if prev is not None
                else TrendCategory.STABLE.value
            )
        if histories is not None:
            history = list(histories.get(class_id, []))
            streak = detect_streak(history)
            entry["recent_grades"] = history
            entry["is_excellent"] = streak.is_excellent
            entry["is_warning"] = streak.is_warning
        entries.append(entry)

    if descending:
        entries.sort(key=lambda e: (-e["rate"], _class_order(classes_by_id, e["class_id"])))
    else:
        entries.sort(key=lambda e: (e["rate"], _class_order(classes_by_id, e["class_id"])))
    return entries


def _class_order(classes_by_id: Mapping, class_id: int) -> tuple:
    cls = classes_by_id[class_id]
    return (cls.grade, cls.section, class_id)


def build_weak_areas(records: list[RecordRow]) -> list[dict]:
    stats = [
        s for s in per_item_fail_rates(judged(records)).values()
        if s.fail_rate > FAIL_RATE_MEDIUM
    ]
    return [
        {
            "key": s.key,
            "code": s.code,
            "title": s.title,
            "fail_rate": s.fail_rate,
            "suggestion_tier": (
                RiskLevel.HIGH if s.fail_rate > FAIL_RATE_HIGH else RiskLevel.MEDIUM
            ).value,
        }
        for s in _by_fail_rate_desc(stats)[:MAX_WEAK_AREAS]
    ]


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

def build_fallback_analysis(inputs: AnalysisInputs) -> dict:
    """Minimal pass used when anything richer failed: trend and alerts only."""
    return {
        "trend_data": build_trend_data(
            inputs.week_rate, inputs.prev_week_rate, inputs.four_weeks_ago_rate,
        ),
        "risk_alerts": build_risk_alerts(per_item_fail_rates(judged(inputs.records))),
    }


def build_admin_analysis(inputs: AnalysisInputs) -> dict:
    analysis = build_fallback_analysis(inputs)
    analysis["grade_comparison_data"] = build_grade_comparison(inputs.records, inputs.classes_by_id)
    analysis["focus_classes"] = build_class_entries(
        inputs.records, inputs.classes_by_id, descending=False,
    )
    return analysis


def build_grade_leader_analysis(inputs: AnalysisInputs) -> dict:
    analysis = build_fallback_analysis(inputs)
    analysis["class_ranking"] = build_class_entries(
        inputs.records,
        inputs.classes_by_id,
        descending=True,
        prev_class_rates=inputs.prev_class_rates,
        histories=inputs.histories,
    )
    analysis["weak_areas"] = build_weak_areas(inputs.records)
    return analysis


RULE_BUILDERS = {
    Role.ADMIN: build_admin_analysis,
    Role.GRADE_LEADER: build_grade_leader_analysis,
}


def build_rule_analysis(role: Role, inputs: AnalysisInputs) -> dict:
    """Role-specific rule analysis; roles without a builder get the fallback pass."""
    return RULE_BUILDERS.get(role, build_fallback_analysis)(inputs)
