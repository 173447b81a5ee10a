"""Dashboard assembly.

Resolves the reporting windows once, pulls the records each panel needs and
hands them to the pure calculators. Classes are narrowed by the caller's
scope: grade leaders and duty teachers with a managed grade see their grade,
class teachers their class, everyone else the whole school.
"""

import logging
from datetime import date, timedelta

from sqlalchemy.orm import Session

from app.core.scope import Role, Scope
from app.core.utils import format_date, parse_date
from app.models.check import CheckModule, SchoolClass, WEEKLY_GRADE_CODE, WEEKLY_GRADES
from app.services.analysis_service import AnalysisOrchestrator, llm_request_for_scope
from app.services.calendar_service import (
    MODE_SCHOOL,
    ReportingWindow,
    SchoolCalendar,
    last_n_working_days,
    resolve_window,
    review_date,
    shift_weeks,
)
from app.services.rate_service import (
    AggregateRate,
    class_rates,
    daily_trend,
    grade_rates,
    judged,
    overall_rate,
    per_item_fail_rates,
)
from app.services.record_store import RecordRow, find_records, list_classes
from app.services.risk_service import AnalysisInputs, class_failed_items
from app.services.streak_service import DEFAULT_LOOKBACK_WEEKS, classify_classes, grade_histories

logger = logging.getLogger(__name__)

WINDOW_WORKING_DAYS = 30
TREND_WORKING_DAYS = 7
MAX_RECENT_REVISIONS = 10
RANGES = ("day", "week", "month")
PERIODS = ("today", "week", "month", "year")


# ---------------------------------------------------------------------------
# Scope helpers
# ---------------------------------------------------------------------------

def scoped_classes(db: Session, scope: Scope) -> list[SchoolClass]:
    if scope.role == Role.CLASS_TEACHER and scope.class_id is not None:
        return db.query(SchoolClass).filter(SchoolClass.id == scope.class_id).all()
    if scope.role in (Role.GRADE_LEADER, Role.DUTY_TEACHER) and scope.grade is not None:
        return list_classes(db, grade=scope.grade)
    return list_classes(db)


def _in_range(records: list[RecordRow], start: str, end: str) -> list[RecordRow]:
    return [r for r in records if start <= r.date <= end]


def _window_rate(records: list[RecordRow], window: ReportingWindow) -> int:
    return overall_rate(_in_range(records, window.start_date, window.end_date)).rate


def range_bounds(range_name: str, today: date, calendar: SchoolCalendar) -> tuple[str, str]:
    """Date bounds for day / week / month (last 30 working days)."""
    today_str = format_date(today)
    if range_name == "day":
        return today_str, today_str
    if range_name == "week":
        window = resolve_window(today, calendar)
        return window.start_date, min(window.end_date, today_str)
    return last_n_working_days(WINDOW_WORKING_DAYS, today)[0], today_str


def period_bounds(period: str, today: date, calendar: SchoolCalendar) -> tuple[str, str]:
    """Date bounds for today, the current week, month-to-date or year-to-date."""
    today_str = format_date(today)
    if period == "today":
        return today_str, today_str
    if period == "week":
        return range_bounds("week", today, calendar)
    if period == "month":
        return format_date(today.replace(day=1)), today_str
    return format_date(today.replace(month=1, day=1)), today_str


# ---------------------------------------------------------------------------
# Panels
# ---------------------------------------------------------------------------

def week_grades(weekly: list[RecordRow], window: ReportingWindow) -> dict[int, str]:
    """Latest W-5 letter per class recorded for the window's week."""
    latest: dict[int, tuple[str, str]] = {}
    for r in _in_range(weekly, window.start_date, max(window.end_date, review_date(window))):
        if r.option_value not in WEEKLY_GRADES:
            continue
        current = latest.get(r.class_id)
        if current is None or r.date >= current[0]:
            latest[r.class_id] = (r.date, r.option_value)
    return {class_id: grade for class_id, (_, grade) in latest.items()}


def _grade_distribution(grades_by_class: dict[int, str], classes: list[SchoolClass]) -> tuple[dict, dict]:
    counts = {"A": 0, "B": 0, "C": 0, "unrated": 0}
    names: dict[str, list[str]] = {"A": [], "B": [], "C": [], "unrated": []}
    for cls in classes:
        grade = grades_by_class.get(cls.id, "unrated")
        counts[grade] += 1
        names[grade].append(cls.name)
    return counts, names


def _recent_revisions(records: list[RecordRow], classes_by_id: dict) -> list[dict]:
    revised = [r for r in records if r.is_revised]
    revised.sort(key=lambda r: (r.reviewed_at.timestamp() if r.reviewed_at else 0.0, r.id), reverse=True)
    return [
        {
            "id": r.id,
            "date": r.date,
            "class_name": classes_by_id[r.class_id].name if r.class_id in classes_by_id else None,
            "check_item_code": r.item_code,
            "check_item_title": r.item_title,
            "passed": r.passed,
            "original_passed": r.original_passed,
            "reviewed_at": r.reviewed_at.isoformat() if r.reviewed_at else None,
        }
        for r in revised[:MAX_RECENT_REVISIONS]
    ]


def item_fail_rate_list(records: list[RecordRow]) -> list[dict]:
    stats = per_item_fail_rates(judged(records)).values()
    return [
        {"key": s.key, "code": s.code, "title": s.title, "fail_rate": s.fail_rate, "total": s.total, "failed": s.failed}
        for s in sorted(stats, key=lambda s: (-s.fail_rate, s.key))
    ]


def _overall_gauge(
    db: Session,
    class_ids: list[int],
    today: date,
    week_rate: int,
    calendar: SchoolCalendar,
) -> dict:
    today_str = format_date(today)
    month_start = format_date(today.replace(day=1))
    in_semester = calendar.start_date and calendar.start_date <= today_str <= calendar.end_date
    semester_start = calendar.start_date if in_semester else month_start
    records = find_records(
        db, min(month_start, semester_start), today_str,
        class_ids=class_ids, module=CheckModule.DAILY.value,
    )
    return {
        "week_rate": week_rate,
        "month_rate": overall_rate(_in_range(records, month_start, today_str)).rate,
        "semester_rate": overall_rate(_in_range(records, semester_start, today_str)).rate,
    }


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def load_window_data(db: Session, scope: Scope, today: date, calendar: SchoolCalendar) -> dict:
    """Records and analysis inputs shared by the dashboard and batch generation."""
    today_str = format_date(today)

    classes = scoped_classes(db, scope)
    classes_by_id = {c.id: c for c in classes}
    class_ids = list(classes_by_id)
    grades = sorted({c.grade for c in classes})

    window = resolve_window(today, calendar)
    prev_window = shift_weeks(window, 1, calendar)
    four_back = shift_weeks(window, 4, calendar)
    lookback_start = shift_weeks(window, DEFAULT_LOOKBACK_WEEKS - 1, calendar)

    start_30 = last_n_working_days(WINDOW_WORKING_DAYS, today)[0]
    prev_ref = today - timedelta(days=7)
    start_30_prev = last_n_working_days(WINDOW_WORKING_DAYS, prev_ref)[0]

    daily = find_records(
        db,
        min(start_30_prev, four_back.start_date),
        today_str,
        class_ids=class_ids,
        module=CheckModule.DAILY.value,
    )
    weekly = find_records(
        db,
        min(lookback_start.start_date, review_date(lookback_start)),
        max(window.end_date, review_date(window)),
        class_ids=class_ids,
        item_code=WEEKLY_GRADE_CODE,
    )

    records_30 = _in_range(daily, start_30, today_str)
    week_records = _in_range(daily, window.start_date, window.end_date)
    week_agg = overall_rate(week_records)
    prev_rates = class_rates(_in_range(daily, start_30_prev, format_date(prev_ref)))
    histories = grade_histories(weekly, lookback=DEFAULT_LOOKBACK_WEEKS)

    inputs = AnalysisInputs(
        records=records_30,
        classes_by_id=classes_by_id,
        week_rate=week_agg.rate,
        prev_week_rate=_window_rate(daily, prev_window),
        four_weeks_ago_rate=_window_rate(daily, four_back),
        prev_class_rates={cid: rate.rate for cid, rate in prev_rates.items()},
        histories=histories,
    )
    return {
        "classes": classes,
        "classes_by_id": classes_by_id,
        "class_ids": class_ids,
        "grades": grades,
        "window": window,
        "daily": daily,
        "weekly": weekly,
        "records_30": records_30,
        "week_agg": week_agg,
        "histories": histories,
        "inputs": inputs,
    }


def build_analysis_inputs(db: Session, scope: Scope, today: date | str, calendar: SchoolCalendar) -> AnalysisInputs:
    return load_window_data(db, scope, parse_date(today), calendar)["inputs"]


def inputs_by_grade(db: Session, today: date | str, calendar: SchoolCalendar) -> dict[int | None, AnalysisInputs]:
    """School-wide inputs under None plus one entry per grade."""
    today = parse_date(today)
    result: dict[int | None, AnalysisInputs] = {
        None: build_analysis_inputs(db, Scope(Role.ADMIN), today, calendar),
    }
    for grade in sorted({c.grade for c in list_classes(db)}):
        result[grade] = build_analysis_inputs(db, Scope(Role.GRADE_LEADER, grade=grade), today, calendar)
    return result


async def build_dashboard(
    db: Session,
    scope: Scope,
    today: date | str,
    calendar: SchoolCalendar,
    orchestrator: AnalysisOrchestrator,
) -> dict:
    today = parse_date(today)
    today_str = format_date(today)

    ctx = load_window_data(db, scope, today, calendar)
    classes = ctx["classes"]
    classes_by_id = ctx["classes_by_id"]
    class_ids = ctx["class_ids"]
    grades = ctx["grades"]
    window = ctx["window"]
    daily = ctx["daily"]
    weekly = ctx["weekly"]
    records_30 = ctx["records_30"]
    week_agg = ctx["week_agg"]
    histories = ctx["histories"]
    inputs = ctx["inputs"]

    today_records = _in_range(daily, today_str, today_str)
    current_grades = week_grades(weekly, window)
    distribution, distribution_classes = _grade_distribution(current_grades, classes)
    tiers = classify_classes(histories, classes_by_id, class_failed_items(records_30))

    llm_request = llm_request_for_scope(db, scope, today_str, inputs)
    ai_analysis = await orchestrator.analyze(scope, today_str, inputs, llm_request)

    data = {
        "stats": {
            "today_item_count": len({r.item_key for r in today_records}),
            "scored_classes": len({r.class_id for r in today_records}),
            "total_classes": len(classes),
            "week_pass_rate": week_agg.rate,
            "week_total": week_agg.total,
            "week_passed": week_agg.passed,
        },
        "grade_distribution": distribution,
        "grade_distribution_classes": distribution_classes,
        "excellent_classes": tiers["excellent"],
        "warning_classes": tiers["warning"],
        "improved_classes": tiers["improved"],
        "weekly_trend": daily_trend(
            daily, last_n_working_days(TREND_WORKING_DAYS, today), classes_by_id, grades,
        ),
        "ai_analysis": ai_analysis,
        "week_mode": window.mode,
        "school_week_number": window.school_week_number if window.mode == MODE_SCHOOL else None,
        "week_label": window.label,
    }

    if scope.grade is not None and scope.role in (Role.GRADE_LEADER, Role.DUTY_TEACHER):
        data["managed_grade"] = scope.grade

    if scope.role == Role.ADMIN:
        data["overall_gauge"] = _overall_gauge(db, class_ids, today, week_agg.rate, calendar)
        data["check_item_fail_rates"] = item_fail_rate_list(records_30)
        data["recent_revisions"] = _recent_revisions(
            _in_range(daily, format_date(today - timedelta(days=7)), today_str), classes_by_id,
        )

    if scope.role == Role.CLASS_TEACHER and scope.class_id in classes_by_id:
        history = histories.get(scope.class_id, [])
        data["class_pass_rate_today"] = overall_rate(today_records).rate
        data["class_pass_rate_week"] = week_agg.rate
        data["class_week_grade"] = current_grades.get(scope.class_id)
        data["class_recent_grades"] = list(history)

    logger.info(
        f"Dashboard built | role={scope.role.value} | classes={len(classes)} | "
        f"source={ai_analysis.get('source')} | mode={window.mode}"
    )
    return data


def rates_by_group(
    db: Session,
    scope: Scope,
    date_from: str,
    date_to: str,
    group_by: str,
) -> list[dict]:
    """Daily pass rates between two dates grouped by class, grade or school."""
    classes = scoped_classes(db, scope)
    classes_by_id = {c.id: c for c in classes}
    records = find_records(
        db, date_from, date_to, class_ids=list(classes_by_id), module=CheckModule.DAILY.value,
    )

    if group_by == "class":
        rates = class_rates(records)
        return [
            {"key": str(cid), "label": cls.name, **_rate_dict(rates.get(cid))}
            for cid, cls in classes_by_id.items()
        ]
    if group_by == "grade":
        rates = grade_rates(records, classes_by_id)
        return [
            {"key": str(g), "label": f"grade-{g}", **_rate_dict(rates.get(g))}
            for g in sorted({c.grade for c in classes})
        ]
    return [{"key": "school", "label": "school", **_rate_dict(overall_rate(records))}]


def _rate_dict(rate: AggregateRate | None) -> dict:
    if rate is None:
        return {"total": 0, "passed": 0, "rate": 0}
    return {"total": rate.total, "passed": rate.passed, "rate": rate.rate}
