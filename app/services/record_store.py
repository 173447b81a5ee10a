"""Read side of check records.

The engine never reads ORM rows directly; `find_records` flattens each
CheckRecord + CheckItem pair into an immutable `RecordRow`. A reviewed row
is already the current state of its key (REVISE overwrites `passed` and
keeps the prior value in `original_passed`), so callers never see both the
original and the correction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from app.models.check import CheckItem, CheckRecord, ReviewAction, SchoolClass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordRow:
    id: int
    date: str
    class_id: int
    check_item_id: int
    item_code: str | None
    item_title: str
    module: str
    passed: bool | None
    option_value: str | None = None
    severity: str | None = None
    is_dynamic: bool = False
    review_action: str | None = None
    original_passed: bool | None = None
    reviewed_at: datetime | None = None

    @property
    def item_key(self) -> str:
        """Stable grouping key: item code, else the item id.

        Dynamic items carry no code and group by id, so no date-specific
        branching is needed downstream.
        """
        return self.item_code or str(self.check_item_id)

    @property
    def is_revised(self) -> bool:
        return self.review_action == ReviewAction.REVISE.value


def _to_row(record: CheckRecord, item: CheckItem) -> RecordRow:
    return RecordRow(
        id=record.id,
        date=record.date,
        class_id=record.class_id,
        check_item_id=record.check_item_id,
        item_code=item.code,
        item_title=item.title,
        module=item.module,
        passed=record.passed,
        option_value=record.option_value,
        severity=record.severity,
        is_dynamic=bool(item.is_dynamic),
        review_action=record.review_action,
        original_passed=record.original_passed,
        reviewed_at=record.reviewed_at,
    )


def find_records(
    db: Session,
    date_from: str,
    date_to: str,
    class_ids: list[int] | None = None,
    module: str | None = None,
    item_code: str | None = None,
) -> list[RecordRow]:
    """Records in [date_from, date_to], optionally narrowed by class/module/code."""
    query = (
        db.query(CheckRecord, CheckItem)
        .join(CheckItem, CheckRecord.check_item_id == CheckItem.id)
        .filter(CheckRecord.date >= date_from, CheckRecord.date <= date_to)
    )
    if class_ids is not None:
        if not class_ids:
            return []
        query = query.filter(CheckRecord.class_id.in_(class_ids))
    if module:
        query = query.filter(CheckItem.module == module)
    if item_code:
        query = query.filter(CheckItem.code == item_code)

    return [_to_row(record, item) for record, item in query.all()]


def list_classes(db: Session, grade: int | None = None) -> list[SchoolClass]:
    query = db.query(SchoolClass)
    if grade is not None:
        query = query.filter(SchoolClass.grade == grade)
    return query.order_by(SchoolClass.grade, SchoolClass.section).all()
