"""Shared date helpers pinned to the school's local timezone."""

from datetime import date, datetime, timedelta, timezone

from app.core.config import settings

DATE_FMT = "%Y-%m-%d"


def school_tz() -> timezone:
    """Fixed-offset timezone of the school (UTC+8 unless configured)."""
    return timezone(timedelta(hours=settings.school_utc_offset_hours))


def school_now() -> datetime:
    return datetime.now(school_tz())


def school_today(now: datetime | None = None) -> date:
    """Calendar day in school-local time.

    Naive datetimes are taken as already school-local.
    """
    if now is None:
        return school_now().date()
    if now.tzinfo is None:
        return now.date()
    return now.astimezone(school_tz()).date()


def parse_date(value: str | date) -> date:
    if isinstance(value, date):
        return value
    return datetime.strptime(value, DATE_FMT).date()


def format_date(value: date) -> str:
    return value.strftime(DATE_FMT)


def round_half_up(value: float) -> int:
    """Round a non-negative number with .5 going up (12.5 -> 13)."""
    return int(value + 0.5)
