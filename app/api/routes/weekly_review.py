from datetime import date, datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_now, get_school_calendar, get_scope, get_today
from app.core.scope import Scope
from app.db.database import get_db
from app.domains.review.services import WeeklyReviewService
from app.schemas.review import WeeklyReviewResponse, WeeklyReviewSubmit, WeeklyReviewSubmitResponse
from app.services.calendar_service import SchoolCalendar

router = APIRouter(prefix="/weekly-review", tags=["Weekly Review"])


@router.get("", response_model=WeeklyReviewResponse)
def get_weekly_review(
    week: str = Query("current"),
    target_class_id: int | None = Query(None, ge=1),
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    calendar: SchoolCalendar = Depends(get_school_calendar),
):
    """W-items, per-class completion and (for one class) a suggested grade."""
    service = WeeklyReviewService(db, calendar)
    return service.get_review(scope, week, today, now, class_id=target_class_id)


@router.post("", response_model=WeeklyReviewSubmitResponse)
def submit_weekly_review(
    payload: WeeklyReviewSubmit,
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    now: datetime = Depends(get_now),
    calendar: SchoolCalendar = Depends(get_school_calendar),
):
    service = WeeklyReviewService(db, calendar)
    return service.submit(
        scope,
        class_id=payload.class_id,
        records=[r.model_dump() for r in payload.records],
        week_param=payload.week,
        today=today,
        now=now,
        confirm_override=payload.confirm_override,
        scored_by_id=payload.scored_by_id,
        scored_by_name=payload.scored_by_name,
    )
