"""Tests for settings helpers and health endpoints."""

import httpx
import pytest
import pytest_asyncio

from app.database.repositories import ExecutionRepository
from app.main import app
from app.utils import config
from app.utils.config import get_ai_config, resolve_ai_provider, validate_settings


class TestAiConfig:
    """Tests for AI provider resolution."""

    def test_explicit_provider(self, monkeypatch):
        """Should honour AI_PROVIDER."""
        monkeypatch.setattr(config.settings, "AI_PROVIDER", "Ollama")

        assert resolve_ai_provider() == "ollama"
        assert get_ai_config()["base_url"] == config.settings.OLLAMA_BASE_URL

    def test_key_selects_openai(self, monkeypatch):
        """Should pick OpenAI when only an API key is configured."""
        monkeypatch.setattr(config.settings, "AI_PROVIDER", "")
        monkeypatch.setattr(config.settings, "OPENAI_API_KEY", "sk-abc")

        assert resolve_ai_provider() == "openai"

    def test_mock_outside_production(self, monkeypatch):
        """Should default to the mock provider in development."""
        monkeypatch.setattr(config.settings, "AI_PROVIDER", "")
        monkeypatch.setattr(config.settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(config.settings, "ENVIRONMENT", "development")

        assert resolve_ai_provider() == "mock"
        assert get_ai_config()["model_name"] == "mock"


class TestValidateSettings:
    """Tests for validate_settings."""

    def test_valid(self):
        """Should accept the test configuration."""
        validate_settings()

    def test_unknown_provider(self, monkeypatch):
        """Should reject unknown providers."""
        monkeypatch.setattr(config.settings, "AI_PROVIDER", "palm")

        with pytest.raises(ValueError, match="unknown provider"):
            validate_settings()

    def test_production_needs_key(self, monkeypatch):
        """Should require an OpenAI key in production."""
        monkeypatch.setattr(config.settings, "AI_PROVIDER", "openai")
        monkeypatch.setattr(config.settings, "OPENAI_API_KEY", None)
        monkeypatch.setattr(config.settings, "ENVIRONMENT", "production")

        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            validate_settings()


class TestHealthEndpoints:
    """Tests for the health and fallback routes."""

    @pytest.mark.asyncio
    async def test_health(self, client):
        """Should report healthy."""
        body = (await client.get("/health")).json()

        assert body["status"] == "healthy"
        assert body["version"] == "1.0.0"

    @pytest.mark.asyncio
    async def test_ready(self, client):
        """Should check the database and the execution manager."""
        response = await client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["database"] is True

    @pytest.mark.asyncio
    async def test_config_hides_secrets(self, client):
        """Should not expose keys."""
        body = (await client.get("/health/config")).json()

        assert body["ai_provider"] == "mock"
        assert body["active_executions"] == 0
        assert "OPENAI_API_KEY" not in str(body)

    @pytest.mark.asyncio
    async def test_unknown_route(self, client):
        """Should answer 404 with path and method."""
        response = await client.get("/api/nothing-here")

        assert response.status_code == 404
        assert response.json() == {"error": "Endpoint not found", "path": "/api/nothing-here", "method": "GET"}


@pytest_asyncio.fixture
async def failing_client(db_tables, monkeypatch):
    """Client whose result listing blows up, with app errors turned into responses."""
    async def broken_listing(*args, **kwargs):
        raise RuntimeError("database file is locked")

    monkeypatch.setattr(ExecutionRepository, "list_executions", staticmethod(broken_listing))
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


class TestServerErrors:
    """Tests for the 500 handler."""

    @pytest.mark.asyncio
    async def test_detail_outside_production(self, failing_client, monkeypatch):
        """Should show the exception text in development."""
        monkeypatch.setattr(config.settings, "ENVIRONMENT", "development")

        response = await failing_client.get("/api/test-results")
        body = response.json()

        assert response.status_code == 500
        assert body["error"] == "database file is locked"
        assert body["path"] == "/api/test-results"
        assert body["timestamp"].endswith("Z")

    @pytest.mark.asyncio
    async def test_generic_in_production(self, failing_client, monkeypatch):
        """Should hide the exception text in production."""
        monkeypatch.setattr(config.settings, "ENVIRONMENT", "production")

        body = (await failing_client.get("/api/test-results")).json()

        assert body["error"] == "Internal server error"
        assert "locked" not in str(body)


class TestStartup:
    """Tests for the application lifespan."""

    @pytest.mark.asyncio
    async def test_interrupted_runs_closed(self, db):
        """Should mark executions left running by a previous process as error."""
        execution = await ExecutionRepository.create_execution(
            db, task_description="click the sign in button", framework="playwright"
        )

        try:
            async with app.router.lifespan_context(app):
                assert hasattr(app.state, "execution_manager")
        finally:
            if hasattr(app.state, "execution_manager"):
                del app.state.execution_manager

        await db.refresh(execution)
        assert execution.status == "error"
        assert execution.error_message == "Interrupted by server restart"
