"""Submission deadline gate for weekly reviews and daily scoring.

`open` says whether the window is still accepting writes; `allowed` says
whether this caller may write anyway. Admins past the deadline are allowed
with `is_override` set, and the write path must ask them to confirm.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from app.core.config import settings
from app.core.errors import DeadlineConfigError
from app.core.scope import Role
from app.core.utils import parse_date, school_tz

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeadlineInfo:
    open: bool
    allowed: bool
    is_override: bool
    deadline: str | None

    def to_dict(self) -> dict:
        return {
            "open": self.open,
            "allowed": self.allowed,
            "is_override": self.is_override,
            "deadline": self.deadline,
        }


def _parse_time(value: str) -> time:
    try:
        hours, minutes = value.split(":")
        return time(int(hours), int(minutes))
    except ValueError as e:
        raise DeadlineConfigError(f"Invalid deadline time {value!r}") from e


def _localize(moment: datetime) -> datetime:
    """Attach school-local tz to naive datetimes."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=school_tz())
    return moment


def weekly_deadline(
    review_friday: str | date | None,
    offset_days: int | None = None,
    cutoff: str | None = None,
) -> datetime:
    """Cutoff for a week's review: Friday + offset days at the cutoff time.

    Defaults to the following Monday 12:00 school-local time.
    """
    if review_friday is None:
        raise DeadlineConfigError("No review week given")
    offset = settings.weekly_review_deadline_offset_days if offset_days is None else offset_days
    at = _parse_time(cutoff or settings.weekly_review_deadline_time)
    day = parse_date(review_friday) + timedelta(days=offset)
    return datetime.combine(day, at, tzinfo=school_tz())


def check_deadline(deadline: datetime | None, now: datetime, role: Role | str) -> DeadlineInfo:
    """Evaluate the gate. Raises DeadlineConfigError when no deadline is known."""
    if deadline is None:
        raise DeadlineConfigError("Deadline is not configured")

    deadline = _localize(deadline)
    is_admin = Role(role) == Role.ADMIN
    is_open = _localize(now) <= deadline
    return DeadlineInfo(
        open=is_open,
        allowed=is_open or is_admin,
        is_override=(not is_open) and is_admin,
        deadline=deadline.isoformat(),
    )


def closed_default(role: Role | str) -> DeadlineInfo:
    """Safe answer when the deadline cannot be determined."""
    is_admin = Role(role) == Role.ADMIN
    return DeadlineInfo(open=False, allowed=is_admin, is_override=is_admin, deadline=None)


def check_weekly_review(review_friday: str | None, now: datetime, role: Role | str) -> DeadlineInfo:
    """Weekly-review gate that degrades to the closed default on misconfiguration."""
    try:
        return check_deadline(weekly_deadline(review_friday), now, role)
    except DeadlineConfigError as e:
        logger.warning(f"Weekly review deadline unavailable | friday={review_friday} | {e}")
        return closed_default(role)


def check_daily_deadline(record_date: str | date, today: str | date, role: Role | str) -> DeadlineInfo:
    """Daily scoring is open only on the record's own day."""
    record_day = parse_date(record_date)
    is_open = record_day == parse_date(today)
    is_admin = Role(role) == Role.ADMIN
    end_of_day = datetime.combine(record_day, time(23, 59, 59), tzinfo=school_tz())
    return DeadlineInfo(
        open=is_open,
        allowed=is_open or is_admin,
        is_override=(not is_open) and is_admin,
        deadline=end_of_day.isoformat(),
    )
