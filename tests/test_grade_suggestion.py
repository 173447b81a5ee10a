"""Tests for the advisory weekly grade suggestion."""

import pytest

from app.services.grade_suggestion_service import count_failures, suggest_weekly_grade

ALL_CLEAR = {"W-1": "0", "W-2": "0", "W-3": "0", "W-4": "0"}


class TestRateOnly:
    @pytest.mark.parametrize("passed,total,grade,reason", [
        (18, 20, "A", "high_pass_rate"),
        (15, 20, "B", "moderate_pass_rate"),
        (14, 20, "C", "low_pass_rate"),
        (20, 20, "A", "high_pass_rate"),
    ])
    def test_cutoffs(self, passed, total, grade, reason):
        result = suggest_weekly_grade(passed, total)
        assert result.grade == grade
        assert result.reason == reason
        assert result.confidence == "high"

    @pytest.mark.parametrize("total,confidence", [(9, "low"), (10, "medium"), (19, "medium"), (20, "high")])
    def test_confidence_by_sample(self, total, confidence):
        assert suggest_weekly_grade(total, total).confidence == confidence

    def test_low_sample_adds_reason(self):
        result = suggest_weekly_grade(5, 5)
        assert result.grade == "A"
        assert result.reasons == ["high_pass_rate", "insufficient_sample"]

    def test_no_records(self):
        result = suggest_weekly_grade(0, 0)
        assert result.grade == "C"
        assert result.rate == 0
        assert result.confidence == "low"


class TestModifiers:
    def test_serious_failure_forces_c(self):
        result = suggest_weekly_grade(19, 20, serious_failures=1)
        assert result.grade == "C"
        assert result.reason == "serious_failure"

    def test_moderate_failure_caps_at_b(self):
        result = suggest_weekly_grade(19, 20, moderate_failures=1)
        assert result.grade == "B"
        assert result.reason == "moderate_failure"

    def test_moderate_failure_keeps_lower_grade(self):
        result = suggest_weekly_grade(10, 20, moderate_failures=2)
        assert result.grade == "C"
        assert result.reasons[0] == "low_pass_rate"

    def test_weekly_gte2_forces_c(self):
        options = {**ALL_CLEAR, "W-3": "gte2"}
        result = suggest_weekly_grade(20, 20, weekly_options=options)
        assert result.grade == "C"
        assert result.reason == "weekly_item_severe"

    def test_weekly_one_caps_at_b(self):
        options = {**ALL_CLEAR, "W-2": "1"}
        result = suggest_weekly_grade(20, 20, weekly_options=options)
        assert result.grade == "B"
        assert result.reason == "weekly_item_minor"

    def test_all_clear_keeps_a_and_confidence(self):
        result = suggest_weekly_grade(20, 20, weekly_options=ALL_CLEAR)
        assert result.grade == "A"
        assert result.confidence == "high"

    def test_incomplete_weekly_items_lower_confidence(self):
        result = suggest_weekly_grade(20, 20, weekly_options={"W-1": "0"})
        assert result.grade == "A"
        assert result.confidence == "medium"
        assert "weekly_items_incomplete" in result.reasons


def test_count_failures():
    pairs = [
        (False, "serious"),
        (False, "moderate"),
        (False, "moderate"),
        (True, "serious"),
        (False, None),
        (None, "serious"),
    ]
    assert count_failures(pairs) == (1, 2)
