"""Tests for custom middleware (security headers, request timing)."""

import logging
from unittest.mock import patch


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_security_headers_present(client):
    """Security headers should be present on responses."""
    resp = client.get("/health")
    assert resp.headers.get("X-Content-Type-Options") == "nosniff"
    assert resp.headers.get("X-Frame-Options") == "DENY"
    assert resp.headers.get("Referrer-Policy") == "strict-origin-when-cross-origin"
    assert "Strict-Transport-Security" not in resp.headers


def test_hsts_in_production(client):
    with patch("app.core.config.settings.environment", "production"):
        resp = client.get("/health")
    assert "max-age=31536000" in resp.headers["Strict-Transport-Security"]


def test_api_requests_are_timed(client):
    resp = client.get("/api/deadlines/weekly", params={"role": "ADMIN"})
    assert resp.status_code == 200
    assert float(resp.headers["X-Response-Time-Ms"]) >= 0


def test_health_is_not_timed(client):
    assert "X-Response-Time-Ms" not in client.get("/health").headers


def test_coded_errors_carry_error_code(client):
    resp = client.get("/api/analytics/dashboard", params={"role": "CLASS_TEACHER"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Class teachers must pass class_id", "error_code": "INVALID_SCOPE"}


def test_lifespan_logs_startup_and_shutdown(caplog):
    from fastapi.testclient import TestClient

    from app.main import app

    with caplog.at_level(logging.INFO, logger="app.main"):
        with TestClient(app):
            pass
    messages = [r.getMessage() for r in caplog.records if r.name == "app.main"]
    assert any("started" in m and "semester=2025-2026-2" in m for m in messages)
    assert any("shutting down" in m for m in messages)
