"""School calendar lookups and reporting-window arithmetic.

A reporting window is the school week containing the reference day while
the semester is in session, and the natural Monday..Sunday week otherwise.
Everything here is a pure function of its arguments except `load_calendar`.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from functools import lru_cache
from pathlib import Path

from app.core.config import settings
from app.core.utils import format_date, parse_date

logger = logging.getLogger(__name__)

MODE_SCHOOL = "school"
MODE_NATURAL = "natural"


@dataclass(frozen=True)
class SchoolWeek:
    week: int
    label: str
    start_date: str
    end_date: str
    school_days: tuple[str, ...] = ()
    note: str | None = None


@dataclass(frozen=True)
class SchoolCalendar:
    semester: str
    semester_name: str
    start_date: str
    end_date: str
    weeks: tuple[SchoolWeek, ...] = ()

    def week_by_number(self, number: int) -> SchoolWeek | None:
        for w in self.weeks:
            if w.week == number:
                return w
        return None

    def week_containing(self, day: str) -> SchoolWeek | None:
        for w in self.weeks:
            if w.start_date <= day <= w.end_date:
                return w
        return None


EMPTY_CALENDAR = SchoolCalendar(semester="", semester_name="", start_date="", end_date="")


@dataclass(frozen=True)
class ReportingWindow:
    start_date: str
    end_date: str
    mode: str
    school_week_number: int | None = None
    label: str = ""
    note: str | None = None
    school_days: tuple[str, ...] = field(default=(), compare=False)

    def contains(self, day: str) -> bool:
        return self.start_date <= day <= self.end_date


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_calendar(path: str | Path) -> SchoolCalendar:
    """Read a semester calendar from a JSON file."""
    with open(path, encoding="utf-8") as fh:
        raw = json.load(fh)

    weeks = tuple(
        SchoolWeek(
            week=int(w["week"]),
            label=w.get("label") or f"Week {w['week']}",
            start_date=w["start_date"],
            end_date=w["end_date"],
            school_days=tuple(w.get("school_days", [])),
            note=w.get("note"),
        )
        for w in sorted(raw.get("weeks", []), key=lambda w: w["start_date"])
    )
    calendar = SchoolCalendar(
        semester=raw.get("semester", ""),
        semester_name=raw.get("semester_name", ""),
        start_date=raw.get("start_date", ""),
        end_date=raw.get("end_date", ""),
        weeks=weeks,
    )
    logger.info(
        f"Loaded school calendar | semester={calendar.semester} | weeks={len(weeks)}"
    )
    return calendar


@lru_cache(maxsize=1)
def get_calendar() -> SchoolCalendar:
    """Process-wide calendar from the configured file; empty if missing."""
    path = Path(settings.school_calendar_file)
    if not path.exists():
        logger.warning(f"School calendar file not found: {path}; using natural weeks")
        return EMPTY_CALENDAR
    return load_calendar(path)


# ---------------------------------------------------------------------------
# Window resolution
# ---------------------------------------------------------------------------

def _natural_window(day: date) -> ReportingWindow:
    monday = day - timedelta(days=day.weekday())
    sunday = monday + timedelta(days=6)
    return ReportingWindow(
        start_date=format_date(monday),
        end_date=format_date(sunday),
        mode=MODE_NATURAL,
        label=f"{format_date(monday)} ~ {format_date(sunday)}",
    )


def _school_window(week: SchoolWeek) -> ReportingWindow:
    return ReportingWindow(
        start_date=week.start_date,
        end_date=week.end_date,
        mode=MODE_SCHOOL,
        school_week_number=week.week,
        label=week.label,
        note=week.note,
        school_days=week.school_days,
    )


def resolve_window(reference: str | date, calendar: SchoolCalendar) -> ReportingWindow:
    """Map a reference day to its reporting window.

    Inside the semester the school week containing the day wins; a day that
    falls between school weeks (weekend, holiday) maps to the most recent
    past school week. Outside the semester, or with an empty calendar, the
    natural week is used.
    """
    day = parse_date(reference)
    day_str = format_date(day)

    if calendar.weeks and calendar.start_date <= day_str <= calendar.end_date:
        exact = calendar.week_containing(day_str)
        if exact:
            return _school_window(exact)
        past = [w for w in calendar.weeks if w.end_date <= day_str]
        if past:
            return _school_window(past[-1])

    return _natural_window(day)


def shift_weeks(window: ReportingWindow, n: int, calendar: SchoolCalendar) -> ReportingWindow:
    """Window `n` weeks earlier than `window` (negative `n` moves forward).

    School windows step through the week table; when the target week number
    is not in the table the natural week 7*n days earlier is returned.
    """
    if n == 0:
        return window

    if window.mode == MODE_SCHOOL and window.school_week_number is not None:
        target = calendar.week_by_number(window.school_week_number - n)
        if target:
            return _school_window(target)

    start = parse_date(window.start_date) - timedelta(days=7 * n)
    return _natural_window(start)


def window_for_offset(today: str | date, week: str, calendar: SchoolCalendar) -> ReportingWindow:
    """Resolve `week` ("current" | "previous") relative to today."""
    current = resolve_window(today, calendar)
    if week == "previous":
        return shift_weeks(current, 1, calendar)
    return current


def last_n_working_days(n: int, today: str | date) -> list[str]:
    """The last `n` Monday..Friday days up to and including today, ascending."""
    days: list[str] = []
    cursor = parse_date(today)
    while len(days) < n:
        if cursor.weekday() < 5:
            days.append(format_date(cursor))
        cursor -= timedelta(days=1)
    days.reverse()
    return days


def review_date(window: ReportingWindow) -> str:
    """Friday of the window's week; weekly records are keyed on this day."""
    start = parse_date(window.start_date)
    monday = start - timedelta(days=start.weekday())
    return format_date(monday + timedelta(days=4))


def window_days(window: ReportingWindow) -> list[str]:
    """School days of a school window, Monday..Friday of a natural one."""
    if window.school_days:
        return list(window.school_days)
    start = parse_date(window.start_date)
    return [format_date(start + timedelta(days=i)) for i in range(5)]
