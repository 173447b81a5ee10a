from pydantic import BaseModel, Field


# --- Shared ---

class DeadlineInfoResponse(BaseModel):
    open: bool
    allowed: bool
    is_override: bool
    deadline: str | None = None


class WeekInfo(BaseModel):
    start_date: str
    end_date: str
    friday: str
    mode: str  # "school" | "natural"
    school_week_number: int | None = None
    label: str = ""
    note: str | None = None
    school_days: list[str] = []


# --- Weekly review read ---

class WeeklyItemResponse(BaseModel):
    id: int
    code: str | None = None
    title: str
    sort_order: int = 0

    class Config:
        from_attributes = True


class WeeklyRecordValue(BaseModel):
    check_item_id: int
    code: str | None = None
    option_value: str | None = None
    comment: str | None = None


class ClassWeeklyStatus(BaseModel):
    class_id: int
    name: str
    grade: int
    section: int
    weekly_records: list[WeeklyRecordValue]
    completed_items: int
    total_items: int
    current_grade: str | None = None
    daily_total: int
    daily_passed: int
    daily_pass_rate: int | None = None
    scored_days: int = 0


class GradeSuggestionResponse(BaseModel):
    grade: str  # "A" | "B" | "C"
    confidence: str  # "high" | "medium" | "low"
    reason: str
    reasons: list[str]
    rate: int
    daily_total: int
    daily_passed: int


class WeeklyReviewResponse(BaseModel):
    week: WeekInfo
    week_param: str
    weekly_items: list[WeeklyItemResponse]
    classes: list[ClassWeeklyStatus]
    grade_suggestion: GradeSuggestionResponse | None = None
    deadline_info: DeadlineInfoResponse


# --- Weekly review write ---

class WeeklyRecordInput(BaseModel):
    check_item_id: int
    option_value: str = Field(max_length=10)
    comment: str | None = Field(default=None, max_length=500)


class WeeklyReviewSubmit(BaseModel):
    class_id: int
    records: list[WeeklyRecordInput] = Field(min_length=1, max_length=20)
    week: str = "current"  # "current" | "previous"
    confirm_override: bool = False
    scored_by_id: int | None = None
    scored_by_name: str | None = Field(default=None, max_length=100)


class WeeklyReviewSubmitResponse(BaseModel):
    success: bool
    friday: str
    saved: int
    is_override: bool


# --- Deadlines ---

class DailyDeadlineResponse(BaseModel):
    date: str
    today: str
    deadline_info: DeadlineInfoResponse
