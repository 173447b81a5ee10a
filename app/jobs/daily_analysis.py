"""Background job to pre-generate the day's LLM analyses.

Meant to run once each school morning. Generates the duty-teacher analysis
for the school and each grade, plus one summary per class, and stores them
write-once. Failed scopes are logged and left empty so readers fall back to
the rule engine.
"""

import logging
import time

from sqlalchemy.orm import Session

from app.core.utils import format_date, parse_date, school_today
from app.db.database import SessionLocal
from app.services.ai_service import get_llm_client
from app.services.analysis_cache import AnalysisCache
from app.services.analysis_service import (
    AnalysisOrchestrator,
    GenerationOutcome,
    generate_scope_analyses,
)
from app.services.calendar_service import SchoolCalendar, get_calendar
from app.services.dashboard_service import inputs_by_grade

logger = logging.getLogger(__name__)


async def run_daily_analysis(
    db: Session,
    orchestrator: AnalysisOrchestrator,
    today=None,
    calendar: SchoolCalendar | None = None,
    scopes: list[str] | None = None,
) -> dict:
    """Generate analyses for `today` and summarize the outcomes."""
    day = parse_date(today) if today is not None else school_today()
    date_str = format_date(day)
    calendar = calendar or get_calendar()

    start = time.perf_counter()
    outcomes: list[GenerationOutcome] = await generate_scope_analyses(
        orchestrator, db, date_str, inputs_by_grade(db, day, calendar), scopes=scopes,
    )
    elapsed_ms = int((time.perf_counter() - start) * 1000)

    failed = [o for o in outcomes if not o.success]
    return {
        "date": date_str,
        "status": "partial" if failed else "success",
        "results": [
            {"scope": o.scope, "success": o.success, "tokens": o.tokens, "cached": o.cached, "error": o.error}
            for o in outcomes
        ],
        "total_tokens": sum(o.tokens for o in outcomes),
        "elapsed_ms": elapsed_ms,
    }


async def generate_daily_analyses():
    """Scheduled entry point: own session, never raises."""
    client = get_llm_client()
    if client is None:
        logger.info("Daily analysis skipped | reason=ai_api_key not set")
        return

    logger.info("Starting daily analysis generation...")
    db = SessionLocal()
    try:
        summary = await run_daily_analysis(db, AnalysisOrchestrator(AnalysisCache(db), client))
        logger.info(
            f"Daily analysis complete | date={summary['date']} | status={summary['status']} | "
            f"scopes={len(summary['results'])} | tokens={summary['total_tokens']} | "
            f"elapsed={summary['elapsed_ms']}ms"
        )
    except Exception as e:
        logger.error(f"Daily analysis job failed: {e}", exc_info=True)
        db.rollback()
    finally:
        db.close()
