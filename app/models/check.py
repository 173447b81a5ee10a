import enum

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.database import Base


class CheckModule(str, enum.Enum):
    """Inspection cadence of a check item (stored as String in DB)."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"


class ReviewAction(str, enum.Enum):
    """Outcome of a reviewer pass over a scored record."""
    APPROVE = "APPROVE"
    REVISE = "REVISE"


class Severity(str, enum.Enum):
    MINOR = "minor"
    MODERATE = "moderate"
    SERIOUS = "serious"


# Item code of the weekly letter grade
WEEKLY_GRADE_CODE = "W-5"
# Weekly items that feed the letter grade suggestion
WEEKLY_OPTION_CODES = ("W-1", "W-2", "W-3", "W-4")
WEEKLY_GRADES = ("A", "B", "C")


class SchoolClass(Base):
    __tablename__ = "classes"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    grade = Column(Integer, nullable=False, index=True)
    section = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    records = relationship("CheckRecord", back_populates="school_class", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("grade", "section", name="uq_classes_grade_section"),
    )


class CheckItem(Base):
    """A fixed inspection criterion, or a dynamic one valid for a single date."""

    __tablename__ = "check_items"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(20), nullable=True, index=True)  # D-1..D-n, W-1..W-5; NULL for dynamic items
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    module = Column(String(20), nullable=False, default=CheckModule.DAILY.value)
    is_dynamic = Column(Boolean, default=False, nullable=False)
    date = Column(String(10), nullable=True)  # YYYY-MM-DD, dynamic items only
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_check_items_module_active", "module", "is_active"),
    )


class CheckRecord(Base):
    """Current state of one class/item/date inspection.

    A review REVISE overwrites `passed` in place and keeps the pre-review
    value in `original_passed`, so there is only ever one row per key.
    """

    __tablename__ = "check_records"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(String(10), nullable=False)  # YYYY-MM-DD
    class_id = Column(Integer, ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    check_item_id = Column(Integer, ForeignKey("check_items.id", ondelete="CASCADE"), nullable=False)

    passed = Column(Boolean, nullable=True)  # NULL = not judged
    option_value = Column(String(10), nullable=True)  # weekly items: "0" | "1" | "gte2" | A/B/C
    severity = Column(String(20), nullable=True)
    comment = Column(Text, nullable=True)

    scored_by_id = Column(Integer, nullable=True)
    scored_by_name = Column(String(100), nullable=True)

    review_action = Column(String(20), nullable=True)
    original_passed = Column(Boolean, nullable=True)
    reviewed_by_id = Column(Integer, nullable=True)
    reviewed_by_name = Column(String(100), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    school_class = relationship("SchoolClass", back_populates="records")
    check_item = relationship("CheckItem")

    __table_args__ = (
        UniqueConstraint("class_id", "check_item_id", "date", name="uq_check_records_class_item_date"),
        Index("ix_check_records_date", "date"),
        Index("ix_check_records_class_date", "class_id", "date"),
    )
