"""Weekly review domain service: W-1..W-5 entry behind the deadline gate."""

import logging
from datetime import date, datetime

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.core.errors import (
    CHECK_ITEM_NOT_FOUND,
    CLASS_NOT_FOUND,
    INVALID_OPTION,
    OVERRIDE_CONFIRMATION_REQUIRED,
    ROLE_NOT_ALLOWED,
    WEEKLY_REVIEW_CLOSED,
    raise_with_code,
)
from app.core.scope import Role, Scope
from app.models.check import (
    CheckItem,
    CheckModule,
    CheckRecord,
    SchoolClass,
    WEEKLY_GRADE_CODE,
    WEEKLY_GRADES,
    WEEKLY_OPTION_CODES,
)
from app.services.calendar_service import (
    ReportingWindow,
    SchoolCalendar,
    review_date,
    window_days,
    window_for_offset,
)
from app.services.dashboard_service import scoped_classes
from app.services.deadline_service import check_weekly_review
from app.services.grade_suggestion_service import (
    OPTION_GTE2,
    OPTION_NONE,
    OPTION_ONE,
    count_failures,
    suggest_weekly_grade,
)
from app.services.rate_service import compute_rate
from app.services.record_store import find_records

logger = logging.getLogger(__name__)

WEEK_PARAMS = ("current", "previous")
SUBMIT_ROLES = (Role.ADMIN, Role.GRADE_LEADER)
COUNT_OPTIONS = (OPTION_NONE, OPTION_ONE, OPTION_GTE2)


class WeeklyReviewService:
    """Read and write a week's W-items for the caller's classes."""

    def __init__(self, db: Session, calendar: SchoolCalendar):
        self.db = db
        self.calendar = calendar

    # -- helpers ------------------------------------------------------------

    def resolve_week(self, today: date | str, week_param: str) -> tuple[ReportingWindow, str]:
        if week_param not in WEEK_PARAMS:
            raise HTTPException(status_code=400, detail=f"week must be one of {', '.join(WEEK_PARAMS)}")
        window = window_for_offset(today, week_param, self.calendar)
        return window, review_date(window)

    def weekly_items(self) -> list[CheckItem]:
        return (
            self.db.query(CheckItem)
            .filter(
                CheckItem.module == CheckModule.WEEKLY.value,
                CheckItem.is_active == True,  # noqa: E712
                CheckItem.is_dynamic == False,  # noqa: E712
            )
            .order_by(CheckItem.sort_order, CheckItem.id)
            .all()
        )

    @staticmethod
    def _week_info(window: ReportingWindow, friday: str) -> dict:
        return {
            "start_date": window.start_date,
            "end_date": window.end_date,
            "friday": friday,
            "mode": window.mode,
            "school_week_number": window.school_week_number,
            "label": window.label,
            "note": window.note,
            "school_days": window_days(window),
        }

    # -- read ---------------------------------------------------------------

    def get_review(
        self,
        scope: Scope,
        week_param: str,
        today: date | str,
        now: datetime,
        class_id: int | None = None,
    ) -> dict:
        window, friday = self.resolve_week(today, week_param)
        school_days = set(window_days(window))
        items = self.weekly_items()
        classes = scoped_classes(self.db, scope)
        class_ids = [c.id for c in classes]
        if class_id is not None:
            if class_id not in class_ids:
                raise_with_code(404, "Class not found in your scope", CLASS_NOT_FOUND)
            class_ids = [class_id]

        weekly = find_records(
            self.db, friday, friday, class_ids=class_ids, module=CheckModule.WEEKLY.value,
        )
        daily = find_records(
            self.db, window.start_date, window.end_date,
            class_ids=class_ids, module=CheckModule.DAILY.value,
        )

        weekly_by_class: dict[int, list] = {}
        for r in weekly:
            weekly_by_class.setdefault(r.class_id, []).append(r)
        daily_by_class: dict[int, list] = {}
        for r in daily:
            daily_by_class.setdefault(r.class_id, []).append(r)

        rows = []
        for cls in classes:
            if cls.id not in class_ids:
                continue
            recs = sorted(weekly_by_class.get(cls.id, []), key=lambda r: (r.item_code or "", r.check_item_id))
            day_recs = daily_by_class.get(cls.id, [])
            passed = sum(1 for r in day_recs if r.passed is True)
            grade_rec = next((r for r in recs if r.item_code == WEEKLY_GRADE_CODE), None)
            rows.append({
                "class_id": cls.id,
                "name": cls.name,
                "grade": cls.grade,
                "section": cls.section,
                "weekly_records": [
                    {"check_item_id": r.check_item_id, "code": r.item_code, "option_value": r.option_value}
                    for r in recs
                ],
                "completed_items": len(recs),
                "total_items": len(items),
                "current_grade": grade_rec.option_value if grade_rec else None,
                "daily_total": len(day_recs),
                "daily_passed": passed,
                "daily_pass_rate": compute_rate(passed, len(day_recs)) if day_recs else None,
                "scored_days": len({r.date for r in day_recs} & school_days),
            })

        suggestion = None
        if class_id is not None:
            day_recs = daily_by_class.get(class_id, [])
            passed = sum(1 for r in day_recs if r.passed is True)
            options = {
                r.item_code: r.option_value
                for r in weekly_by_class.get(class_id, [])
                if r.item_code in WEEKLY_OPTION_CODES
            }
            serious, moderate = count_failures([(r.passed, r.severity) for r in day_recs])
            result = suggest_weekly_grade(
                passed, len(day_recs),
                weekly_options=options,
                serious_failures=serious,
                moderate_failures=moderate,
            )
            suggestion = {
                "grade": result.grade,
                "confidence": result.confidence,
                "reason": result.reason,
                "reasons": result.reasons,
                "rate": result.rate,
                "daily_total": len(day_recs),
                "daily_passed": passed,
            }

        return {
            "week": self._week_info(window, friday),
            "week_param": week_param,
            "weekly_items": items,
            "classes": rows,
            "grade_suggestion": suggestion,
            "deadline_info": check_weekly_review(friday, now, scope.role).to_dict(),
        }

    # -- write --------------------------------------------------------------

    def _validate_option(self, item: CheckItem, value: str) -> None:
        allowed = WEEKLY_GRADES if item.code == WEEKLY_GRADE_CODE else COUNT_OPTIONS
        if value not in allowed:
            raise_with_code(
                400,
                f"Invalid option {value!r} for {item.code or item.id}; expected one of {', '.join(allowed)}",
                INVALID_OPTION,
            )

    def submit(
        self,
        scope: Scope,
        class_id: int,
        records: list[dict],
        week_param: str,
        today: date | str,
        now: datetime,
        confirm_override: bool = False,
        scored_by_id: int | None = None,
        scored_by_name: str | None = None,
    ) -> dict:
        if scope.role not in SUBMIT_ROLES:
            raise_with_code(403, "Only admins and grade leaders submit weekly reviews", ROLE_NOT_ALLOWED)

        cls = self.db.query(SchoolClass).filter(SchoolClass.id == class_id).first()
        if cls is None:
            raise_with_code(404, "Class not found", CLASS_NOT_FOUND)
        if scope.role == Role.GRADE_LEADER and scope.grade is not None and cls.grade != scope.grade:
            raise_with_code(403, "Grade leaders may only review their own grade", ROLE_NOT_ALLOWED)

        _, friday = self.resolve_week(today, week_param)
        gate = check_weekly_review(friday, now, scope.role)
        if not gate.allowed:
            raise_with_code(
                403,
                f"Weekly review closed at {gate.deadline}" if gate.deadline else "Weekly review is closed",
                WEEKLY_REVIEW_CLOSED,
            )
        if gate.is_override and not confirm_override:
            raise_with_code(
                409,
                f"Deadline {gate.deadline} has passed; resubmit with confirm_override to proceed",
                OVERRIDE_CONFIRMATION_REQUIRED,
            )

        items = {item.id: item for item in self.weekly_items()}
        for rec in records:
            item = items.get(rec["check_item_id"])
            if item is None:
                raise_with_code(404, f"Weekly check item {rec['check_item_id']} not found", CHECK_ITEM_NOT_FOUND)
            self._validate_option(item, rec["option_value"])

        for rec in records:
            existing = (
                self.db.query(CheckRecord)
                .filter(
                    CheckRecord.class_id == class_id,
                    CheckRecord.check_item_id == rec["check_item_id"],
                    CheckRecord.date == friday,
                )
                .first()
            )
            if existing:
                existing.option_value = rec["option_value"]
                existing.comment = rec.get("comment")
            else:
                self.db.add(CheckRecord(
                    class_id=class_id,
                    check_item_id=rec["check_item_id"],
                    date=friday,
                    option_value=rec["option_value"],
                    comment=rec.get("comment"),
                    scored_by_id=scored_by_id,
                    scored_by_name=scored_by_name,
                ))
        self.db.commit()

        if gate.is_override:
            logger.warning(
                f"Admin override on closed weekly review | class={class_id} | "
                f"friday={friday} | deadline={gate.deadline} | by={scored_by_name or scored_by_id}"
            )
        logger.info(
            f"Weekly review saved | class={class_id} | friday={friday} | "
            f"week={week_param} | items={len(records)}"
        )
        return {"success": True, "friday": friday, "saved": len(records), "is_override": gate.is_override}


