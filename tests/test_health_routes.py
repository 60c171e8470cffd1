"""
Tests for health check endpoints.
"""
import pytest
from httpx import AsyncClient, ASGITransport
from unittest.mock import patch

from calmflow.main import create_app
from calmflow.services.runtime import build_runtime


class TestHealthRoutes:
    """Test health endpoints."""

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "calmflow-session-core"
        assert "timestamp" in data

    async def test_health_full_memory_store(self, client):
        response = await client.get("/health/full")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["storage"] == "memory"
        assert data["ticker"] == "stopped"
        assert data["session"] == "idle"

    async def test_health_full_reports_session(self, client):
        await client.post("/api/session", json={"activities": [{"type": "focus", "source_id": "clarity-pause"}]})
        data = (await client.get("/health/full")).json()
        assert data["session"] == "active"

    async def test_health_full_sql_store(self, sql_store):
        app = create_app(build_runtime(sql_store))
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            data = (await ac.get("/health/full")).json()

        assert data["status"] == "healthy"
        assert data["storage"] == "connected"

    async def test_health_full_sql_store_down(self, sql_store):
        app = create_app(build_runtime(sql_store))
        with patch("calmflow.api.routes.health.check_db_connection", return_value=False):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                data = (await ac.get("/health/full")).json()

        assert data["status"] == "unhealthy"
        assert data["storage"] == "disconnected"
