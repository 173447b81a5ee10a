from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_orchestrator, get_school_calendar, get_scope, get_today
from app.core.scope import Scope
from app.core.utils import format_date, parse_date
from app.db.database import get_db
from app.models.check import CheckModule
from app.schemas.analytics import DashboardResponse, ItemFailRatesResponse, RatesResponse
from app.services.analysis_service import AnalysisOrchestrator
from app.services.calendar_service import SchoolCalendar
from app.services.dashboard_service import (
    PERIODS,
    RANGES,
    build_dashboard,
    item_fail_rate_list,
    period_bounds,
    range_bounds,
    rates_by_group,
    scoped_classes,
)
from app.services.record_store import find_records

router = APIRouter(prefix="/analytics", tags=["Analytics"])

GROUP_BY = ("class", "grade", "school")


def _parse_or_400(value: str, field: str) -> date:
    try:
        return parse_date(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{field} must be YYYY-MM-DD",
        )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    calendar: SchoolCalendar = Depends(get_school_calendar),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Role-shaped dashboard: stats, grade tiers, trend and analysis."""
    return await build_dashboard(db, scope, today, calendar, orchestrator)


@router.get("/rates", response_model=RatesResponse)
def get_rates(
    date_from: str | None = Query(None),
    date_to: str | None = Query(None),
    period: str | None = Query(None),
    group_by: str = Query("class"),
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    calendar: SchoolCalendar = Depends(get_school_calendar),
):
    """Daily pass rates grouped by class, grade or school.

    The window is either `period` (today, week, month, year to date) or an
    explicit `date_from`..`date_to`; an explicit range wins.
    """
    if group_by not in GROUP_BY:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"group_by must be one of {', '.join(GROUP_BY)}",
        )
    if date_from is not None or date_to is not None:
        if date_from is None or date_to is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="date_from and date_to must be given together",
            )
        start = format_date(_parse_or_400(date_from, "date_from"))
        end = format_date(_parse_or_400(date_to, "date_to"))
        if start > end:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date_from must not be after date_to")
    else:
        if period is None:
            period = "week"
        if period not in PERIODS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"period must be one of {', '.join(PERIODS)}",
            )
        start, end = period_bounds(period, today, calendar)
    rows = rates_by_group(db, scope, start, end, group_by)
    return {"date_from": start, "date_to": end, "group_by": group_by, "rows": rows}


@router.get("/item-fail-rates", response_model=ItemFailRatesResponse)
def get_item_fail_rates(
    range: str = Query("month"),
    scope: Scope = Depends(get_scope),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    calendar: SchoolCalendar = Depends(get_school_calendar),
):
    """Per-item failure rates over day, week or the last 30 working days."""
    if range not in RANGES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"range must be one of {', '.join(RANGES)}",
        )
    start, end = range_bounds(range, today, calendar)
    class_ids = [c.id for c in scoped_classes(db, scope)]
    records = find_records(db, start, end, class_ids=class_ids, module=CheckModule.DAILY.value)
    return {"range": range, "date_from": start, "date_to": end, "items": item_fail_rate_list(records)}
