"""
Main entry point for spec-agents service.

Creates the FastAPI application instance for uvicorn.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import InMemoryRateLimitLedger, StaticTokenVerifier
from src.api.error_handlers import register_error_handlers
from src.api.routes.health import router as health_router
from src.api.routes.health import set_service_start_time
from src.api.routes.pipeline import router as pipeline_router
from src.clients.model_client import ModelClient
from src.core.config import get_settings
from src.core.http import HTTPClientFactory
from src.core.logging import configure_logging, get_logger
from src.prompts import PromptCache, PromptService, YamlTemplateSource
from src.research.stream import InMemoryEventSink
from src.tools.registry import create_default_registry


# Configure structured logging on module load
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    On startup: build shared HTTP clients, the model client, the tool
    registry, the prompt service, and the auth and rate-limit backends.
    On shutdown: close every HTTP client.
    """
    settings = get_settings()
    logger.info("Starting spec-agents service", port=settings.port)

    set_service_start_time()

    if not settings.has_model_provider:
        logger.warning("No model provider key configured; pipeline requests will return 503")

    http_factory = HTTPClientFactory(settings)
    app.state.http_factory = http_factory
    app.state.model_client = ModelClient(settings, http_factory=http_factory)
    app.state.tool_registry = create_default_registry(settings, http_factory)
    app.state.prompt_service = PromptService(
        YamlTemplateSource(settings.prompt_templates_path),
        PromptCache(ttl_seconds=settings.prompt_cache_ttl_seconds),
    )
    app.state.token_verifier = StaticTokenVerifier(settings.auth_tokens)
    app.state.rate_limit_ledger = InMemoryRateLimitLedger()
    app.state.event_sink = InMemoryEventSink()
    logger.info("Pipeline services initialized", tools=app.state.tool_registry.names())

    yield

    logger.info("Shutting down spec-agents service")
    await http_factory.aclose()
    logger.info("HTTP clients closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Registers:
    - pipeline_router: POST /v1/pipeline/run
    - health_router: GET /health
    """
    app = FastAPI(
        title="Spec Agents Service",
        description="Multi-agent research and debate orchestrator",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(pipeline_router)
    app.include_router(health_router)

    return app


# Create application instance
app = create_app()
