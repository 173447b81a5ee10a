"""Analysis orchestration: cached LLM advice with a rule-based safety net.

Each caller role maps to one strategy:
  - ADMIN / GRADE_LEADER: rule engine only (`source=rule`)
  - DUTY_TEACHER / CLASS_TEACHER: cached LLM advice (`source=llm`)
  - anything else, or any failure on the way: minimal rule pass
    (`source=fallback`)

`AnalysisOrchestrator.analyze` never raises. Cache writes go through
create-if-absent, so concurrent generators for the same (date, scope)
converge on one stored row.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.scope import Role, Scope
from app.models.check import CheckItem, CheckModule
from app.services import analysis_prompts
from app.services.ai_service import LLMClient, LLMOptions, load_module_options
from app.services.analysis_cache import AnalysisCache
from app.services.rate_service import class_rates, judged, per_item_fail_rates
from app.services.risk_service import (
    FAIL_RATE_MEDIUM,
    AnalysisInputs,
    build_fallback_analysis,
    build_rule_analysis,
    class_failed_items,
)
from app.services.streak_service import latest_grade

logger = logging.getLogger(__name__)

SOURCE_RULE = "rule"
SOURCE_LLM = "llm"
SOURCE_FALLBACK = "fallback"

MAX_DUTY_HIGH_FAIL_ITEMS = 3


class Strategy(str, enum.Enum):
    RULE = "rule"
    LLM = "llm"
    FALLBACK = "fallback"


ROLE_STRATEGIES = {
    Role.ADMIN: Strategy.RULE,
    Role.GRADE_LEADER: Strategy.RULE,
    Role.DUTY_TEACHER: Strategy.LLM,
    Role.CLASS_TEACHER: Strategy.LLM,
}


@dataclass(frozen=True)
class LLMRequest:
    system_prompt: str
    user_prompt: str
    options: LLMOptions


@dataclass(frozen=True)
class GenerationOutcome:
    scope: str
    success: bool
    tokens: int = 0
    cached: bool = False
    error: str | None = None


class AnalysisOrchestrator:
    def __init__(
        self,
        cache: AnalysisCache,
        llm_client: LLMClient | None = None,
        timeout_seconds: float | None = None,
    ):
        self.cache = cache
        self.llm_client = llm_client
        self.timeout_seconds = timeout_seconds or settings.ai_timeout_seconds

    async def analyze(
        self,
        scope: Scope,
        date: str,
        inputs: AnalysisInputs,
        llm_request: LLMRequest | None = None,
    ) -> dict:
        """Analysis for the caller's scope; degrades to fallback on any error."""
        strategy = ROLE_STRATEGIES.get(scope.role, Strategy.FALLBACK)
        try:
            if strategy == Strategy.RULE:
                return {"source": SOURCE_RULE, **build_rule_analysis(scope.role, inputs)}

            if strategy == Strategy.LLM:
                content = await self._llm_content(date, scope.cache_key, llm_request)
                if content is not None:
                    return {**build_fallback_analysis(inputs), **content, "source": SOURCE_LLM}
        except Exception as e:
            logger.warning(
                f"Analysis failed, using fallback | date={date} | scope={scope.cache_key} | {e}",
                exc_info=True,
            )
        return self.fallback(inputs)

    def fallback(self, inputs: AnalysisInputs) -> dict:
        try:
            return {"source": SOURCE_FALLBACK, **build_fallback_analysis(inputs)}
        except Exception as e:
            logger.error(f"Fallback analysis failed: {e}", exc_info=True)
            return {"source": SOURCE_FALLBACK, "trend_data": None, "risk_alerts": []}

    async def _llm_content(self, date: str, key: str, request: LLMRequest | None) -> dict | None:
        cached = self.cache.get(date, key)
        if cached is not None:
            return cached
        if self.llm_client is None or request is None or not request.options.is_active:
            return None

        outcome = await self.generate(date, key, request)
        if not outcome.success:
            return None
        return self.cache.get(date, key)

    async def generate(self, date: str, key: str, request: LLMRequest) -> GenerationOutcome:
        """Call the model once and store the result if no row exists yet.

        A readable row already present (before or after the call) counts as
        success with `cached=True`; an unreadable one is regenerated. Nothing
        is written on timeout, cancellation or error.
        """
        if self.cache.get(date, key) is not None:
            return GenerationOutcome(scope=key, success=True, cached=True)
        if self.llm_client is None:
            return GenerationOutcome(scope=key, success=False, error="LLM client not configured")

        try:
            result = await asyncio.wait_for(
                self.llm_client.generate_json(
                    request.system_prompt,
                    request.user_prompt,
                    temperature=request.options.temperature,
                    max_tokens=request.options.max_tokens,
                    model=request.options.model,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"LLM timed out | date={date} | scope={key} | timeout={self.timeout_seconds}s"
            )
            return GenerationOutcome(scope=key, success=False, error="timeout")
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            logger.warning(f"LLM call cancelled | date={date} | scope={key}")
            return GenerationOutcome(scope=key, success=False, error="cancelled")
        except Exception as e:
            logger.warning(f"LLM generation failed | date={date} | scope={key} | {e}")
            return GenerationOutcome(scope=key, success=False, error=str(e))

        created = self.cache.create_if_absent(
            date, key, result.result, tokens=result.tokens, model=result.model,
        )
        return GenerationOutcome(
            scope=key, success=True, tokens=result.tokens if created else 0, cached=not created,
        )


# ---------------------------------------------------------------------------
# LLM request builders
# ---------------------------------------------------------------------------

def planned_item_labels(db: Session, date: str) -> list[str]:
    """Active daily items plus dynamic items dated `date`, in display order."""
    items = (
        db.query(CheckItem)
        .filter(CheckItem.module == CheckModule.DAILY.value, CheckItem.is_active == True)  # noqa: E712
        .order_by(CheckItem.sort_order, CheckItem.id)
        .all()
    )
    return [
        f"{item.code or '*'} {item.title}"
        for item in items
        if not item.is_dynamic or item.date == date
    ]


def duty_request(
    db: Session,
    date: str,
    inputs: AnalysisInputs,
    locale: str | None = None,
) -> LLMRequest:
    locale = locale or settings.analysis_locale
    options = load_module_options(db, "duty")
    high_fail = sorted(
        (s for s in per_item_fail_rates(judged(inputs.records)).values() if s.fail_rate > FAIL_RATE_MEDIUM),
        key=lambda s: (-s.fail_rate, s.key),
    )[:MAX_DUTY_HIGH_FAIL_ITEMS]
    return LLMRequest(
        system_prompt=options.system_prompt or analysis_prompts.system_prompt(locale),
        user_prompt=analysis_prompts.build_duty_prompt(
            planned_item_labels(db, date), high_fail, inputs.week_rate, locale,
        ),
        options=options,
    )


def class_summary_request(
    db: Session,
    class_id: int,
    inputs: AnalysisInputs,
    locale: str | None = None,
) -> LLMRequest | None:
    """Request for one class; None when the class is not in `inputs`."""
    locale = locale or settings.analysis_locale
    cls = inputs.classes_by_id.get(class_id)
    if cls is None:
        return None
    options = load_module_options(db, f"class-summary-{class_id}")
    class_records = [r for r in inputs.records if r.class_id == class_id]
    rate = class_rates(class_records).get(class_id)
    return LLMRequest(
        system_prompt=options.system_prompt or analysis_prompts.system_prompt(locale),
        user_prompt=analysis_prompts.build_class_summary_prompt(
            cls.name,
            rate.rate if rate else 0,
            latest_grade(list(inputs.histories.get(class_id, []))),
            inputs.week_rate,
            class_failed_items(class_records).get(class_id, []),
            locale,
        ),
        options=options,
    )


def llm_request_for_scope(
    db: Session,
    scope: Scope,
    date: str,
    inputs: AnalysisInputs,
) -> LLMRequest | None:
    if scope.role == Role.CLASS_TEACHER and scope.class_id is not None:
        return class_summary_request(db, scope.class_id, inputs)
    if scope.role == Role.DUTY_TEACHER:
        return duty_request(db, date, inputs)
    return None


async def generate_scope_analyses(
    orchestrator: AnalysisOrchestrator,
    db: Session,
    date: str,
    inputs_by_grade: dict[int | None, AnalysisInputs],
    scopes: list[str] | None = None,
) -> list[GenerationOutcome]:
    """Batch generation for the scheduled job and the admin trigger.

    `inputs_by_grade[None]` holds the school-wide inputs. `scopes` narrows
    the run to "duty" and/or "class-summary"; None runs both.
    """
    outcomes: list[GenerationOutcome] = []
    wanted = set(scopes) if scopes else {"duty", "class-summary"}
    school = inputs_by_grade.get(None, AnalysisInputs())

    if "duty" in wanted and load_module_options(db, "duty").is_active:
        for grade, inputs in inputs_by_grade.items():
            key = Scope(Role.DUTY_TEACHER, grade=grade).cache_key
            outcomes.append(await orchestrator.generate(date, key, duty_request(db, date, inputs)))

    if "class-summary" in wanted and load_module_options(db, "class-summary").is_active:
        for class_id in school.classes_by_id:
            request = class_summary_request(db, class_id, school)
            if request is None:
                continue
            key = Scope(Role.CLASS_TEACHER, class_id=class_id).cache_key
            outcomes.append(await orchestrator.generate(date, key, request))

    ok = sum(1 for o in outcomes if o.success)
    tokens = sum(o.tokens for o in outcomes)
    logger.info(
        f"Scope analyses generated | date={date} | ok={ok} | failed={len(outcomes) - ok} | tokens={tokens}"
    )
    return outcomes
