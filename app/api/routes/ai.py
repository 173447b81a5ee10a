import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.api.deps import get_orchestrator, get_school_calendar, get_today, require_role
from app.core.config import settings
from app.core.errors import AI_NOT_CONFIGURED, raise_with_code
from app.core.rate_limit import limiter
from app.core.scope import Role, Scope
from app.core.utils import format_date, parse_date
from app.db.database import get_db
from app.jobs.daily_analysis import run_daily_analysis
from app.schemas.analytics import (
    AnalysisTriggerRequest,
    AnalysisTriggerResponse,
    CachedAnalysisListResponse,
)
from app.services.ai_service import is_configured
from app.services.analysis_cache import AnalysisCache
from app.services.analysis_service import AnalysisOrchestrator
from app.services.calendar_service import SchoolCalendar

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI Analysis"])

SCOPE_GROUPS = ("duty", "class-summary")


@router.post("/daily-analysis", response_model=AnalysisTriggerResponse)
@limiter.limit(settings.ai_trigger_rate_limit)
async def trigger_daily_analysis(
    request: Request,
    payload: AnalysisTriggerRequest | None = None,
    scope: Scope = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    calendar: SchoolCalendar = Depends(get_school_calendar),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Generate today's analyses now. Existing rows are kept as-is."""
    if orchestrator.llm_client is None:
        raise_with_code(503, "AI analysis is not configured", AI_NOT_CONFIGURED)

    scopes = payload.scopes if payload else None
    if scopes:
        unknown = [s for s in scopes if s not in SCOPE_GROUPS]
        if unknown:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Unknown scopes: {', '.join(unknown)}",
            )

    summary = await run_daily_analysis(db, orchestrator, today=today, calendar=calendar, scopes=scopes)
    logger.info(
        f"Manual analysis trigger | date={summary['date']} | status={summary['status']} | "
        f"tokens={summary['total_tokens']}"
    )
    return summary


@router.get("/analyses", response_model=CachedAnalysisListResponse)
def list_analyses(
    day: str | None = Query(None, alias="date"),
    scope: Scope = Depends(require_role(Role.ADMIN)),
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
):
    """Cached analyses for a date (defaults to today)."""
    try:
        target = parse_date(day) if day else today
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="date must be YYYY-MM-DD")
    date_str = format_date(target)
    return {
        "date": date_str,
        "configured": is_configured(),
        "analyses": AnalysisCache(db).list_for_date(date_str),
    }
