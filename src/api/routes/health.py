"""Health check API routes.

Provides REST API endpoints for health monitoring and readiness checks.
Provider entries report whether credentials are configured; no outbound
calls are made.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import Enum

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.dependencies import get_app_settings
from src.core.config import Settings


logger = logging.getLogger(__name__)


# =============================================================================
# Router Configuration
# =============================================================================

router = APIRouter(
    prefix="/health",
    tags=["Health"],
)


# =============================================================================
# Enums and Constants
# =============================================================================

class HealthStatus(str, Enum):
    """Health status enum."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


SERVICE_VERSION = "0.1.0"


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Response model for health check.

    Attributes:
        status: Overall service status
        service: Service name
        version: Service version
        timestamp: Check timestamp (ISO format)
        uptime_seconds: Service uptime in seconds
        providers: Whether each external provider has credentials configured
    """

    status: HealthStatus = Field(
        default=HealthStatus.HEALTHY,
        description="Overall service status",
    )
    service: str = Field(..., description="Service name")
    version: str = Field(
        default=SERVICE_VERSION,
        description="Service version",
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(UTC).isoformat(),
        description="Check timestamp",
    )
    uptime_seconds: float | None = Field(
        default=None,
        description="Service uptime in seconds",
    )
    providers: dict[str, bool] = Field(
        default_factory=dict,
        description="Credential presence per provider",
    )


# =============================================================================
# Service Start Time
# =============================================================================

_service_start_time: datetime | None = None


def set_service_start_time(start_time: datetime | None = None) -> None:
    """Set the service start time for uptime calculation.

    Args:
        start_time: Service start time, defaults to now
    """
    global _service_start_time
    _service_start_time = start_time or datetime.now(UTC)


def get_uptime_seconds() -> float | None:
    if _service_start_time is None:
        return None
    return (datetime.now(UTC) - _service_start_time).total_seconds()


# =============================================================================
# Status calculation
# =============================================================================

def provider_status(settings: Settings) -> dict[str, bool]:
    return {
        "openrouter": settings.openrouter_api_key is not None,
        "groq": settings.groq_api_key is not None,
        "exa": settings.exa_api_key is not None,
    }


def calculate_overall_status(providers: dict[str, bool]) -> HealthStatus:
    """Unhealthy without any model provider, degraded when one is missing."""
    model_providers = [providers.get("openrouter", False), providers.get("groq", False)]
    if not any(model_providers):
        return HealthStatus.UNHEALTHY
    if not all(providers.values()):
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


# =============================================================================
# Endpoints
# =============================================================================

@router.get("", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """Report service status and provider credential presence."""
    providers = provider_status(settings)
    status = calculate_overall_status(providers)
    if status != HealthStatus.HEALTHY:
        logger.debug("Health check reports %s: %s", status.value, providers)
    return HealthResponse(
        status=status,
        service=settings.service_name,
        uptime_seconds=get_uptime_seconds(),
        providers=providers,
    )
