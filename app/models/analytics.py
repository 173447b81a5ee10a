from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from app.db.database import Base


class AiAnalysis(Base):
    """Cached LLM analysis for one (date, scope).

    Written once per key; the unique constraint turns concurrent writers
    into a create-if-absent race that exactly one side wins.
    """

    __tablename__ = "ai_analyses"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(String(10), nullable=False, index=True)  # YYYY-MM-DD
    scope = Column(String(100), nullable=False)  # "duty", "class-summary-12", ...
    content = Column(Text, nullable=False)  # JSON string (Text for SQLite compat)
    tokens = Column(Integer, default=0, nullable=False)
    model = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("date", "scope", name="uq_ai_analyses_date_scope"),
    )


class AiModuleConfig(Base):
    """Per-scope overrides for LLM prompt and sampling options.

    `class-summary-*` scopes all read the `class-summary` row.
    """

    __tablename__ = "ai_module_configs"

    id = Column(Integer, primary_key=True, index=True)
    scope = Column(String(100), nullable=False, unique=True)
    system_prompt = Column(Text, nullable=True)  # NULL = built-in prompt
    temperature = Column(Float, nullable=False, default=0.3)
    max_tokens = Column(Integer, nullable=False, default=2000)
    model = Column(String(100), nullable=False, default="deepseek-chat")
    is_active = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
