from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_now, get_school_calendar, get_scope, get_today
from app.core.scope import Scope
from app.core.utils import format_date, parse_date
from app.schemas.review import DailyDeadlineResponse, DeadlineInfoResponse
from app.services.calendar_service import SchoolCalendar, review_date, window_for_offset
from app.services.deadline_service import check_daily_deadline, check_weekly_review

router = APIRouter(prefix="/deadlines", tags=["Deadlines"])


@router.get("/weekly", response_model=DeadlineInfoResponse)
def get_weekly_deadline(
    week: str = Query("current"),
    scope: Scope = Depends(get_scope),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    calendar: SchoolCalendar = Depends(get_school_calendar),
):
    if week not in ("current", "previous"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="week must be current or previous")
    friday = review_date(window_for_offset(today, week, calendar))
    return check_weekly_review(friday, now, scope.role).to_dict()


@router.get("/daily", response_model=DailyDeadlineResponse)
def get_daily_deadline(
    record_date: str = Query(..., alias="date"),
    scope: Scope = Depends(get_scope),
    today: date = Depends(get_today),
):
    try:
        day = parse_date(record_date)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date must be YYYY-MM-DD")
    return {
        "date": format_date(day),
        "today": format_date(today),
        "deadline_info": check_daily_deadline(day, today, scope.role).to_dict(),
    }
