"""Tests for the analytics endpoints (dashboard, rates, item fail rates)."""

import pytest

from app.services.analysis_cache import AnalysisCache


@pytest.fixture()
def seeded(db_session, school, make_record):
    """Week 7 daily checks plus three weeks of W-5 grades.

    Class 1-1: A, A, A        -> excellent
    Class 1-2: C, B           -> improved
    Class 2-1: C, C (no wk 7) -> warning
    """
    c1, c2, c3 = school["classes"]
    d1, d2 = school["daily"]["D-1"], school["daily"]["D-2"]
    w5 = school["weekly"]["W-5"]

    make_record(c1, d1, "2026-04-15", passed=True)
    make_record(c1, d2, "2026-04-15", passed=False)
    make_record(c2, d1, "2026-04-15", passed=True)
    make_record(c1, d1, "2026-04-14", passed=True)
    make_record(c3, d1, "2026-04-14", passed=True)

    for day in ("2026-04-03", "2026-04-10", "2026-04-17"):
        make_record(c1, w5, day, option_value="A")
    make_record(c2, w5, "2026-04-10", option_value="C")
    make_record(c2, w5, "2026-04-17", option_value="B")
    make_record(c3, w5, "2026-04-03", option_value="C")
    make_record(c3, w5, "2026-04-10", option_value="C")
    return school


class TestDashboard:
    def test_admin(self, client, seeded):
        resp = client.get("/api/analytics/dashboard", params={"role": "ADMIN"})
        assert resp.status_code == 200, resp.text
        data = resp.json()

        assert data["stats"] == {
            "today_item_count": 2,
            "scored_classes": 2,
            "total_classes": 3,
            "week_pass_rate": 80,
            "week_total": 5,
            "week_passed": 4,
        }
        assert data["grade_distribution"] == {"A": 1, "B": 1, "C": 0, "unrated": 1}
        assert data["grade_distribution_classes"]["unrated"] == ["二年级1班"]
        assert [c["name"] for c in data["excellent_classes"]] == ["一年级1班"]
        assert data["excellent_classes"][0]["weeks"] == 3
        assert data["warning_classes"][0]["name"] == "二年级1班"
        assert data["improved_classes"][0]["from_grade"] == "C"
        assert data["improved_classes"][0]["to_grade"] == "B"

        assert data["week_mode"] == "school"
        assert data["school_week_number"] == 7
        assert data["week_label"] == "第7周"
        assert len(data["weekly_trend"]) == 7
        assert data["weekly_trend"][-1]["date"] == "2026-04-15"

        assert data["ai_analysis"]["source"] == "rule"
        assert "focus_classes" in data["ai_analysis"]
        assert data["overall_gauge"] == {"week_rate": 80, "month_rate": 80, "semester_rate": 80}
        assert data["check_item_fail_rates"][0]["code"] == "D-2"
        assert data["recent_revisions"] == []
        assert data["managed_grade"] is None

    def test_grade_leader_sees_own_grade(self, client, seeded):
        resp = client.get("/api/analytics/dashboard", params={"role": "GRADE_LEADER", "managed_grade": 1})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["stats"]["total_classes"] == 2
        assert data["managed_grade"] == 1
        ranking = data["ai_analysis"]["class_ranking"]
        assert [c["name"] for c in ranking] == ["一年级2班", "一年级1班"]
        assert data["overall_gauge"] is None

    def test_grade_leader_requires_grade(self, client, seeded):
        resp = client.get("/api/analytics/dashboard", params={"role": "GRADE_LEADER"})
        assert resp.status_code == 400
        assert resp.json()["error_code"] == "INVALID_SCOPE"

    def test_class_teacher_panel(self, client, seeded):
        c1 = seeded["classes"][0]
        resp = client.get("/api/analytics/dashboard", params={"role": "CLASS_TEACHER", "class_id": c1.id})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["class_pass_rate_today"] == 50
        assert data["class_pass_rate_week"] == 67
        assert data["class_week_grade"] == "A"
        assert data["class_recent_grades"] == ["A", "A", "A"]
        # No provider configured and nothing cached
        assert data["ai_analysis"]["source"] == "fallback"

    def test_duty_teacher_served_from_cache(self, client, seeded, db_session):
        AnalysisCache(db_session).create_if_absent(
            "2026-04-15", "duty", {"focus_points": [], "tips": ["Check the stairs"], "recent_issues": []},
        )
        resp = client.get("/api/analytics/dashboard", params={"role": "DUTY_TEACHER"})
        assert resp.status_code == 200, resp.text
        analysis = resp.json()["ai_analysis"]
        assert analysis["source"] == "llm"
        assert analysis["tips"] == ["Check the stairs"]
        assert "trend_data" in analysis

    def test_missing_role(self, client):
        assert client.get("/api/analytics/dashboard").status_code == 422

    def test_empty_school(self, client):
        resp = client.get("/api/analytics/dashboard", params={"role": "ADMIN"})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["stats"]["total_classes"] == 0
        assert data["stats"]["week_pass_rate"] == 0
        assert data["ai_analysis"]["risk_alerts"] == []


class TestRates:
    def test_by_grade(self, client, seeded):
        resp = client.get("/api/analytics/rates", params={
            "role": "ADMIN", "date_from": "2026-04-13", "date_to": "2026-04-15", "group_by": "grade",
        })
        assert resp.status_code == 200, resp.text
        rows = resp.json()["rows"]
        assert [(r["key"], r["total"], r["passed"], r["rate"]) for r in rows] == [
            ("1", 4, 3, 75),
            ("2", 1, 1, 100),
        ]

    def test_school(self, client, seeded):
        resp = client.get("/api/analytics/rates", params={
            "role": "ADMIN", "date_from": "2026-04-13", "date_to": "2026-04-15", "group_by": "school",
        })
        assert resp.json()["rows"] == [{"key": "school", "label": "school", "total": 5, "passed": 4, "rate": 80}]

    def test_by_class_scoped_to_grade(self, client, seeded):
        resp = client.get("/api/analytics/rates", params={
            "role": "GRADE_LEADER", "managed_grade": 2,
            "date_from": "2026-04-13", "date_to": "2026-04-15",
        })
        rows = resp.json()["rows"]
        assert len(rows) == 1
        assert rows[0]["label"] == "二年级1班"

    @pytest.mark.parametrize("period,bounds", [
        ("today", ("2026-04-15", "2026-04-15")),
        ("month", ("2026-04-01", "2026-04-15")),
        ("year", ("2026-01-01", "2026-04-15")),
    ])
    def test_period(self, client, seeded, period, bounds):
        resp = client.get("/api/analytics/rates", params={"role": "ADMIN", "period": period})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert (data["date_from"], data["date_to"]) == bounds

    def test_explicit_range_wins_over_period(self, client, seeded):
        data = client.get("/api/analytics/rates", params={
            "role": "ADMIN", "period": "today", "date_from": "2026-04-13", "date_to": "2026-04-15",
        }).json()
        assert data["date_from"] == "2026-04-13"

    @pytest.mark.parametrize("params", [
        {"period": "decade"},
        {"date_from": "2026-04-13"},
        {"date_from": "2026-04-15", "date_to": "2026-04-13"},
        {"date_from": "2026/04/13", "date_to": "2026-04-15"},
        {"date_from": "2026-04-13", "date_to": "2026-04-15", "group_by": "district"},
    ])
    def test_bad_params(self, client, params):
        resp = client.get("/api/analytics/rates", params={"role": "ADMIN", **params})
        assert resp.status_code == 400


class TestItemFailRates:
    def test_week(self, client, seeded):
        resp = client.get("/api/analytics/item-fail-rates", params={"role": "ADMIN", "range": "week"})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert (data["date_from"], data["date_to"]) == ("2026-04-13", "2026-04-15")
        assert [(i["code"], i["fail_rate"]) for i in data["items"]] == [("D-2", 100), ("D-1", 0)]

    def test_day(self, client, seeded):
        data = client.get("/api/analytics/item-fail-rates", params={"role": "ADMIN", "range": "day"}).json()
        assert data["date_from"] == data["date_to"] == "2026-04-15"

    def test_bad_range(self, client):
        resp = client.get("/api/analytics/item-fail-rates", params={"role": "ADMIN", "range": "year"})
        assert resp.status_code == 400
