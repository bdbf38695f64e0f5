"""Tests for the FastAPI app wiring."""

from __future__ import annotations

from fastapi.testclient import TestClient

from quotedesk.main import app


class TestHealth:
    def test_health_check(self):
        # No context manager: the lifespan (database, sweep) is not started
        client = TestClient(app)
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "environment" in response.json()
