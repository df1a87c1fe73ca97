"""Tests for GET /health."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.dependencies import get_app_settings
from src.api.routes.health import (
    SERVICE_VERSION,
    HealthStatus,
    calculate_overall_status,
    provider_status,
    router,
)
from src.core.config import Settings


def _client(settings: Settings) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_app_settings] = lambda: settings
    return TestClient(app)


class TestCalculateOverallStatus:
    """Tests for status rollup."""

    def test_all_configured(self) -> None:
        providers = {"openrouter": True, "groq": True, "exa": True}

        assert calculate_overall_status(providers) is HealthStatus.HEALTHY

    @pytest.mark.parametrize("providers", [
        {"openrouter": True, "groq": False, "exa": True},
        {"openrouter": False, "groq": True, "exa": True},
        {"openrouter": True, "groq": True, "exa": False},
    ])
    def test_partial_is_degraded(self, providers: dict[str, bool]) -> None:
        assert calculate_overall_status(providers) is HealthStatus.DEGRADED

    def test_no_model_provider_is_unhealthy(self) -> None:
        providers = {"openrouter": False, "groq": False, "exa": True}

        assert calculate_overall_status(providers) is HealthStatus.UNHEALTHY


class TestHealthEndpoint:
    """Tests for the endpoint itself."""

    def test_reports_providers(self, test_settings: Settings) -> None:
        response = _client(test_settings).get("/health")

        body = response.json()
        assert response.status_code == 200
        assert body["status"] == "degraded"
        assert body["service"] == "spec-agents"
        assert body["version"] == SERVICE_VERSION
        assert body["providers"] == {"openrouter": True, "groq": False, "exa": False}

    def test_healthy_with_all_keys(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={
            "groq_api_key": test_settings.openrouter_api_key,
            "exa_api_key": test_settings.openrouter_api_key,
        })

        assert _client(settings).get("/health").json()["status"] == "healthy"

    def test_never_leaks_keys(self, test_settings: Settings) -> None:
        response = _client(test_settings).get("/health")

        assert "test-openrouter-key" not in response.text

    def test_provider_status(self, test_settings: Settings) -> None:
        assert provider_status(test_settings)["openrouter"] is True
