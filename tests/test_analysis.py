"""Tests for the analysis orchestrator: rule roles, LLM cache and fallback."""

import asyncio
from unittest.mock import patch

import pytest

from app.core.scope import Role, Scope
from app.models.analytics import AiAnalysis, AiModuleConfig
from app.services.ai_service import LLMResult
from app.services.analysis_cache import AnalysisCache
from app.services.analysis_service import (
    AnalysisOrchestrator,
    class_summary_request,
    duty_request,
    generate_scope_analyses,
    llm_request_for_scope,
)
from app.services.risk_service import AnalysisInputs

DAY = "2026-04-15"
ADVICE = {"focus_points": ["Check uniforms at the gate"], "tips": [], "recent_issues": []}


class FakeLLM:
    def __init__(self, result=None, delay=0.0, error=None, on_call=None):
        self.result = result if result is not None else ADVICE
        self.delay = delay
        self.error = error
        self.on_call = on_call
        self.calls = 0

    async def generate_json(self, system_prompt, user_prompt, temperature=None, max_tokens=None, model=None):
        self.calls += 1
        if self.on_call:
            self.on_call()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return LLMResult(result=self.result, tokens=42, model="fake-model")


@pytest.fixture()
def inputs(school):
    return AnalysisInputs(
        classes_by_id={c.id: c for c in school["classes"]},
        week_rate=80,
        prev_week_rate=70,
        four_weeks_ago_rate=85,
    )


def run(coro):
    return asyncio.run(coro)


class TestRuleRoles:
    def test_admin_gets_rule_analysis_without_llm(self, db_session, inputs):
        llm = FakeLLM()
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session), llm)
        result = run(orchestrator.analyze(Scope(Role.ADMIN), DAY, inputs))
        assert result["source"] == "rule"
        assert "focus_classes" in result
        assert "grade_comparison_data" in result
        assert llm.calls == 0

    def test_grade_leader_gets_ranking(self, db_session, inputs):
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session), FakeLLM())
        result = run(orchestrator.analyze(Scope(Role.GRADE_LEADER, grade=1), DAY, inputs))
        assert result["source"] == "rule"
        assert len(result["class_ranking"]) == 3
        assert result["weak_areas"] == []

    def test_unmapped_role_gets_fallback(self, db_session, inputs):
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session), FakeLLM())
        result = run(orchestrator.analyze(Scope(Role.SUBJECT_TEACHER), DAY, inputs))
        assert result["source"] == "fallback"
        assert result["trend_data"]["summary_category"] == "up"


class TestLLMRoles:
    def test_cache_hit_is_served_without_calling_llm(self, db_session, inputs):
        cache = AnalysisCache(db_session)
        cache.create_if_absent(DAY, "duty", ADVICE, tokens=10, model="m")
        llm = FakeLLM()
        result = run(AnalysisOrchestrator(cache, llm).analyze(Scope(Role.DUTY_TEACHER), DAY, inputs))
        assert result["source"] == "llm"
        assert result["focus_points"] == ADVICE["focus_points"]
        assert "trend_data" in result
        assert llm.calls == 0

    def test_miss_generates_and_stores(self, db_session, inputs):
        cache = AnalysisCache(db_session)
        llm = FakeLLM()
        request = duty_request(db_session, DAY, inputs)
        result = run(AnalysisOrchestrator(cache, llm).analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert result["source"] == "llm"
        assert llm.calls == 1
        row = cache.get_row(DAY, "duty")
        assert row.tokens == 42
        assert row.model == "fake-model"

    def test_miss_without_client_falls_back(self, db_session, inputs):
        request = duty_request(db_session, DAY, inputs)
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session))
        result = run(orchestrator.analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert result["source"] == "fallback"
        assert set(result) == {"source", "trend_data", "risk_alerts"}

    def test_corrupt_cache_row_is_ignored(self, db_session, inputs):
        db_session.add(AiAnalysis(date=DAY, scope="duty", content="{not json", tokens=0, model="m"))
        db_session.commit()
        result = run(AnalysisOrchestrator(AnalysisCache(db_session)).analyze(
            Scope(Role.DUTY_TEACHER), DAY, inputs,
        ))
        assert result["source"] == "fallback"

    def test_corrupt_cache_row_is_regenerated(self, db_session, inputs):
        db_session.add(AiAnalysis(date=DAY, scope="duty", content="{not json", tokens=0, model="m"))
        db_session.commit()
        cache = AnalysisCache(db_session)
        llm = FakeLLM()
        request = duty_request(db_session, DAY, inputs)

        result = run(AnalysisOrchestrator(cache, llm).analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert result["source"] == "llm"
        assert result["focus_points"] == ADVICE["focus_points"]
        assert llm.calls == 1
        assert cache.get(DAY, "duty") == ADVICE
        assert db_session.query(AiAnalysis).count() == 1

        # Now readable, so the next caller is served from the cache
        run(AnalysisOrchestrator(cache, llm).analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert llm.calls == 1

    def test_cancelled_call_falls_back_and_writes_nothing(self, db_session, inputs):
        cache = AnalysisCache(db_session)
        orchestrator = AnalysisOrchestrator(cache, FakeLLM(error=asyncio.CancelledError()))
        request = duty_request(db_session, DAY, inputs)

        outcome = run(orchestrator.generate(DAY, "duty", request))
        assert not outcome.success
        assert outcome.error == "cancelled"

        result = run(orchestrator.analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert result["source"] == "fallback"
        assert cache.get_row(DAY, "duty") is None

    def test_timeout_falls_back_and_writes_nothing(self, db_session, inputs):
        cache = AnalysisCache(db_session)
        orchestrator = AnalysisOrchestrator(cache, FakeLLM(delay=1.0), timeout_seconds=0.01)
        request = duty_request(db_session, DAY, inputs)
        result = run(orchestrator.analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert result["source"] == "fallback"
        assert cache.get_row(DAY, "duty") is None

    def test_provider_error_falls_back(self, db_session, inputs):
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session), FakeLLM(error=RuntimeError("502")))
        request = duty_request(db_session, DAY, inputs)
        result = run(orchestrator.analyze(Scope(Role.DUTY_TEACHER), DAY, inputs, request))
        assert result["source"] == "fallback"

    def test_inactive_module_skips_llm(self, db_session, inputs):
        db_session.add(AiModuleConfig(scope="duty", is_active=False))
        db_session.commit()
        llm = FakeLLM()
        request = duty_request(db_session, DAY, inputs)
        result = run(AnalysisOrchestrator(AnalysisCache(db_session), llm).analyze(
            Scope(Role.DUTY_TEACHER), DAY, inputs, request,
        ))
        assert result["source"] == "fallback"
        assert llm.calls == 0

    def test_lost_race_keeps_winner(self, db_session, inputs):
        cache = AnalysisCache(db_session)
        winner = {"focus_points": ["winner"], "tips": [], "recent_issues": []}

        def competitor_writes():
            cache.create_if_absent(DAY, "duty", winner, tokens=7, model="other")

        orchestrator = AnalysisOrchestrator(cache, FakeLLM(on_call=competitor_writes))
        request = duty_request(db_session, DAY, inputs)

        outcome = run(orchestrator.generate(DAY, "duty", request))
        assert outcome.success
        assert outcome.cached
        assert outcome.tokens == 0
        assert cache.get(DAY, "duty") == winner
        assert db_session.query(AiAnalysis).count() == 1

    def test_fallback_never_raises(self, db_session, inputs):
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session))
        with patch(
            "app.services.analysis_service.build_fallback_analysis",
            side_effect=RuntimeError("boom"),
        ):
            result = run(orchestrator.analyze(Scope(Role.SUBJECT_TEACHER), DAY, inputs))
        assert result == {"source": "fallback", "trend_data": None, "risk_alerts": []}


class TestRequests:
    def test_request_for_scope(self, db_session, school, inputs):
        cls = school["classes"][0]
        assert llm_request_for_scope(db_session, Scope(Role.ADMIN), DAY, inputs) is None
        duty = llm_request_for_scope(db_session, Scope(Role.DUTY_TEACHER), DAY, inputs)
        assert "D-1 Classroom tidy" in duty.user_prompt
        summary = llm_request_for_scope(db_session, Scope(Role.CLASS_TEACHER, class_id=cls.id), DAY, inputs)
        assert cls.name in summary.user_prompt

    def test_unknown_class_has_no_request(self, db_session, inputs):
        assert class_summary_request(db_session, 999, inputs) is None

    def test_module_config_overrides_prompt(self, db_session, inputs):
        db_session.add(AiModuleConfig(scope="class-summary", system_prompt="Be brief.", temperature=0.1))
        db_session.commit()
        class_id = next(iter(inputs.classes_by_id))
        request = class_summary_request(db_session, class_id, inputs)
        assert request.system_prompt == "Be brief."
        assert request.options.temperature == 0.1


class TestBatchGeneration:
    def test_generates_duty_and_class_summaries(self, db_session, school, inputs):
        llm = FakeLLM()
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session), llm)
        outcomes = run(generate_scope_analyses(orchestrator, db_session, DAY, {None: inputs, 1: inputs}))

        scopes = [o.scope for o in outcomes]
        class_ids = [c.id for c in school["classes"]]
        assert scopes == ["duty", "duty-grade-1"] + [f"class-summary-{cid}" for cid in class_ids]
        assert all(o.success for o in outcomes)
        assert sum(o.tokens for o in outcomes) == 42 * len(outcomes)

        # Second run finds everything cached
        again = run(generate_scope_analyses(orchestrator, db_session, DAY, {None: inputs, 1: inputs}))
        assert all(o.cached and o.tokens == 0 for o in again)
        assert llm.calls == len(outcomes)

    def test_scope_filter(self, db_session, inputs):
        orchestrator = AnalysisOrchestrator(AnalysisCache(db_session), FakeLLM())
        outcomes = run(generate_scope_analyses(orchestrator, db_session, DAY, {None: inputs}, scopes=["duty"]))
        assert [o.scope for o in outcomes] == ["duty"]
