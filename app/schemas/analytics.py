from datetime import datetime

from pydantic import BaseModel


# --- Dashboard ---

class DashboardStats(BaseModel):
    today_item_count: int
    scored_classes: int
    total_classes: int
    week_pass_rate: int
    week_total: int
    week_passed: int


class GradeDistribution(BaseModel):
    A: int = 0
    B: int = 0
    C: int = 0
    unrated: int = 0


class ExcellentClass(BaseModel):
    class_id: int
    name: str
    grade: int
    weeks: int


class FailedItem(BaseModel):
    code: str | None = None
    title: str
    fail_rate: int


class WarningClass(BaseModel):
    class_id: int
    name: str
    grade: int
    weeks: int
    failed_items: list[FailedItem] = []


class ImprovedClass(BaseModel):
    class_id: int
    name: str
    grade: int
    from_grade: str
    to_grade: str


class TrendPoint(BaseModel):
    date: str
    grade_rates: dict[int, int]
    overall_rate: int


class DashboardResponse(BaseModel):
    """Dashboard payload; role-specific panels are optional.

    `ai_analysis` stays a free-form dict: its fields depend on `source`
    (rule / llm / fallback) and on the caller's role.
    """
    stats: DashboardStats
    grade_distribution: GradeDistribution
    grade_distribution_classes: dict[str, list[str]] = {}
    excellent_classes: list[ExcellentClass]
    warning_classes: list[WarningClass]
    improved_classes: list[ImprovedClass]
    weekly_trend: list[TrendPoint]
    ai_analysis: dict
    week_mode: str
    school_week_number: int | None = None
    week_label: str = ""
    managed_grade: int | None = None
    # ADMIN
    overall_gauge: dict | None = None
    check_item_fail_rates: list[dict] | None = None
    recent_revisions: list[dict] | None = None
    # CLASS_TEACHER
    class_pass_rate_today: int | None = None
    class_pass_rate_week: int | None = None
    class_week_grade: str | None = None
    class_recent_grades: list[str] | None = None


# --- Rates ---

class RateRow(BaseModel):
    key: str
    label: str
    total: int
    passed: int
    rate: int


class RatesResponse(BaseModel):
    date_from: str
    date_to: str
    group_by: str
    rows: list[RateRow]


class ItemFailRateRow(BaseModel):
    key: str
    code: str | None = None
    title: str
    fail_rate: int
    total: int
    failed: int


class ItemFailRatesResponse(BaseModel):
    range: str
    date_from: str
    date_to: str
    items: list[ItemFailRateRow]


# --- AI analyses ---

class AnalysisTriggerRequest(BaseModel):
    scopes: list[str] | None = None  # "duty", "class-summary"; None = all


class AnalysisOutcomeResponse(BaseModel):
    scope: str
    success: bool
    tokens: int = 0
    cached: bool = False
    error: str | None = None


class AnalysisTriggerResponse(BaseModel):
    date: str
    status: str  # "success" | "partial"
    results: list[AnalysisOutcomeResponse]
    total_tokens: int
    elapsed_ms: int


class CachedAnalysisResponse(BaseModel):
    scope: str
    tokens: int
    model: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CachedAnalysisListResponse(BaseModel):
    date: str
    configured: bool
    analyses: list[CachedAnalysisResponse]
