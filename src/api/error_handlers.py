"""Error handlers for API routes.

Every error body has the shape ``{"error": <user-safe message>}``; 429
responses also carry ``retryAfter``. Raw exception text and stack traces
are logged but never returned.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from src.core.exceptions import (
    AgentNotFoundError,
    AgentValidationError,
    ChallengerNotFoundError,
    ConfigurationError,
)


logger = logging.getLogger(__name__)


# Type alias for exception handler
ExceptionHandler = Callable[[Request, Exception], Awaitable[JSONResponse]]

CONFIGURATION_ERROR_MESSAGE = "Service configuration error. Please contact support."
RATE_LIMIT_MESSAGE = "Service temporarily unavailable. Please try again shortly."
PROCESSING_ERROR_MESSAGE = "Processing error. Please try again."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


# =============================================================================
# Error Response Model
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response model.

    Attributes:
        error: User-safe error message
        retry_after: Seconds until the client may retry (429 only)
    """

    model_config = ConfigDict(populate_by_name=True)

    error: str = Field(
        ...,
        description="User-safe error message",
    )
    retry_after: int | None = Field(
        default=None,
        alias="retryAfter",
        description="Seconds until the rate limit window resets",
    )

    def to_body(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


def error_response(status_code: int, message: str, retry_after: int | None = None) -> JSONResponse:
    headers = {"Retry-After": str(retry_after)} if retry_after is not None else None
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=message, retry_after=retry_after).to_body(),
        headers=headers,
    )


# =============================================================================
# Custom Exceptions
# =============================================================================

class InputValidationError(Exception):
    """Raised when request input is rejected before any model call."""

    def __init__(self, message: str = "Invalid input") -> None:
        self.message = message
        super().__init__(message)


class PromptInjectionError(InputValidationError):
    """Raised when user text matches prompt-injection patterns."""

    def __init__(self) -> None:
        super().__init__("Invalid input detected")


class AuthenticationError(Exception):
    """Raised when the bearer token is missing or invalid."""

    def __init__(self, message: str = "Authorization required") -> None:
        self.message = message
        super().__init__(message)


class RateLimitExceededError(Exception):
    """Raised when the caller has exhausted its request window.

    Attributes:
        retry_after: Seconds until the window resets
    """

    def __init__(self, retry_after: int) -> None:
        self.retry_after = retry_after
        super().__init__(f"Rate limit exceeded, retry after {retry_after}s")


# =============================================================================
# Message mapping
# =============================================================================

def get_user_message(error: BaseException) -> str:
    """Map an arbitrary exception to a message safe to show users."""
    text = str(error)
    if "RATE_LIMIT" in text or "rate limit" in text.lower():
        return RATE_LIMIT_MESSAGE
    if "API" in text or "api" in text:
        return PROCESSING_ERROR_MESSAGE
    if "not configured" in text:
        return CONFIGURATION_ERROR_MESSAGE
    return UNEXPECTED_ERROR_MESSAGE


# =============================================================================
# Exception Handlers
# =============================================================================

async def http_exception_handler(
    request: Request,
    exc: HTTPException,
) -> JSONResponse:
    """Handle HTTPException with the standard error body."""
    return error_response(exc.status_code, str(exc.detail))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request body validation errors as 400.

    Args:
        request: FastAPI request object
        exc: RequestValidationError raised

    Returns:
        JSONResponse naming the offending fields
    """
    field_errors = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error.get("loc", []) if x != "body")
        msg = error.get("msg", "Invalid value")
        field_errors.append(f"{loc}: {msg}" if loc else msg)

    detail = "; ".join(field_errors) if field_errors else "Validation error"
    return error_response(400, f"Invalid request: {detail}")


async def input_validation_handler(
    request: Request,
    exc: InputValidationError,
) -> JSONResponse:
    logger.warning("Rejected input on %s: %s", request.url.path, type(exc).__name__)
    return error_response(400, exc.message)


async def agent_validation_handler(
    request: Request,
    exc: AgentValidationError,
) -> JSONResponse:
    """Handle missing or invalid stage inputs.

    Args:
        request: FastAPI request object
        exc: AgentValidationError raised by a stage

    Returns:
        JSONResponse with 400 status
    """
    return error_response(400, str(exc))


async def challenger_not_found_handler(
    request: Request,
    exc: ChallengerNotFoundError,
) -> JSONResponse:
    logger.warning("Challenger missing from agent configs: %s", exc.challenger)
    return error_response(400, "Challenge stage requires the full expert panel to be configured")


async def agent_not_found_handler(
    request: Request,
    exc: AgentNotFoundError,
) -> JSONResponse:
    return error_response(404, str(exc))


async def authentication_handler(
    request: Request,
    exc: AuthenticationError,
) -> JSONResponse:
    return error_response(401, exc.message)


async def rate_limit_handler(
    request: Request,
    exc: RateLimitExceededError,
) -> JSONResponse:
    """Handle exhausted rate limit windows.

    Args:
        request: FastAPI request object
        exc: RateLimitExceededError raised

    Returns:
        JSONResponse with 429 status and retryAfter
    """
    return error_response(
        429,
        "Rate limit exceeded. Please try again later.",
        retry_after=exc.retry_after,
    )


async def configuration_error_handler(
    request: Request,
    exc: ConfigurationError,
) -> JSONResponse:
    logger.error("Configuration error: %s", exc)
    return error_response(503, CONFIGURATION_ERROR_MESSAGE)


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle uncaught exceptions.

    Args:
        request: FastAPI request object
        exc: Exception raised

    Returns:
        JSONResponse with 500 status and a mapped user message
    """
    logger.exception(
        "Unhandled exception",
        extra={
            "path": str(request.url.path),
            "error_type": type(exc).__name__,
        },
    )
    return error_response(500, get_user_message(exc))


# =============================================================================
# Registration Function
# =============================================================================

def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    # Cast handlers to match FastAPI's expected signature
    app.add_exception_handler(
        HTTPException,
        http_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RequestValidationError,
        validation_exception_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        InputValidationError,
        input_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        AgentValidationError,
        agent_validation_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ChallengerNotFoundError,
        challenger_not_found_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        AgentNotFoundError,
        agent_not_found_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        AuthenticationError,
        authentication_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        RateLimitExceededError,
        rate_limit_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        ConfigurationError,
        configuration_error_handler,  # type: ignore[arg-type]
    )
    app.add_exception_handler(
        Exception,
        generic_exception_handler,
    )


__all__ = [
    "AuthenticationError",
    "ErrorResponse",
    "InputValidationError",
    "PromptInjectionError",
    "RateLimitExceededError",
    "get_user_message",
    "register_error_handlers",
]
