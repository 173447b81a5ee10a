from datetime import date, datetime

from fastapi import Depends, Query
from sqlalchemy.orm import Session

from app.core.errors import INVALID_SCOPE, ROLE_NOT_ALLOWED, raise_with_code
from app.core.scope import Role, Scope
from app.core.utils import school_now, school_today
from app.db.database import get_db
from app.services.ai_service import get_llm_client
from app.services.analysis_cache import AnalysisCache
from app.services.analysis_service import AnalysisOrchestrator
from app.services.calendar_service import SchoolCalendar, get_calendar


def get_scope(
    role: Role = Query(..., description="Caller role"),
    managed_grade: int | None = Query(None, ge=1, le=12),
    class_id: int | None = Query(None, ge=1),
) -> Scope:
    """Build the caller's scope from query parameters.

    Identity comes from the upstream gateway; this service only needs the
    role and what it manages.
    """
    if role == Role.GRADE_LEADER and managed_grade is None:
        raise_with_code(400, "Grade leaders must pass managed_grade", INVALID_SCOPE)
    if role == Role.CLASS_TEACHER and class_id is None:
        raise_with_code(400, "Class teachers must pass class_id", INVALID_SCOPE)
    return Scope(role=role, grade=managed_grade, class_id=class_id)


def require_role(*roles: Role):
    """Dependency factory that checks the caller holds one of the given roles."""
    def checker(scope: Scope = Depends(get_scope)) -> Scope:
        if scope.role not in roles:
            raise_with_code(403, "Insufficient permissions", ROLE_NOT_ALLOWED)
        return scope
    return checker


def get_today() -> date:
    return school_today()


def get_now() -> datetime:
    return school_now()


def get_school_calendar() -> SchoolCalendar:
    return get_calendar()


def get_orchestrator(db: Session = Depends(get_db)) -> AnalysisOrchestrator:
    return AnalysisOrchestrator(AnalysisCache(db), get_llm_client())
