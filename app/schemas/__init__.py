from app.schemas.analytics import DashboardResponse, RatesResponse, ItemFailRatesResponse
from app.schemas.review import (
    WeeklyReviewResponse, WeeklyReviewSubmit, WeeklyReviewSubmitResponse,
    DeadlineInfoResponse,
)
