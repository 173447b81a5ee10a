"""Application configuration loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CALENDAR_FILE = str(Path(__file__).resolve().parent.parent / "data" / "school_calendar.json")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ── App ──────────────────────────────────────────────────────────────────
    app_name: str = "Class Routine Review"
    environment: str = "development"
    api_prefix: str = "/api"
    allowed_origins: str = ""  # comma-separated; empty disables CORS

    # ── Database ─────────────────────────────────────────────────────────────
    database_url: str = "sqlite:///./routine_review.db"

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_file: str = ""  # empty = console only

    # ── School calendar ──────────────────────────────────────────────────────
    school_calendar_file: str = DEFAULT_CALENDAR_FILE
    school_utc_offset_hours: int = 8

    # ── Weekly review deadline ───────────────────────────────────────────────
    # Cutoff is the review Friday + offset days at the given local time
    # (next Monday 12:00 by default).
    weekly_review_deadline_offset_days: int = 3
    weekly_review_deadline_time: str = "12:00"

    # ── LLM analysis (OpenAI-compatible endpoint) ────────────────────────────
    ai_api_key: str = ""
    ai_base_url: str = "https://api.deepseek.com"
    ai_model: str = "deepseek-chat"
    ai_timeout_seconds: float = 20.0
    ai_temperature: float = 0.3
    ai_max_tokens: int = 2000
    analysis_locale: str = "zh"  # zh | en

    # ── Rate limits ──────────────────────────────────────────────────────────
    ai_trigger_rate_limit: str = "5/minute"


settings = Settings()
