"""
FastAPI Application
==================

FastAPI application exposing the HTML to image converter over HTTP.
"""

from contextlib import asynccontextmanager
import uuid
from typing import AsyncGenerator, Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from wkimage import __version__
from wkimage.config.settings import get_settings
from wkimage.config.logging import get_logger, setup_logging
from wkimage.core.rendering.exceptions import (
    ImageGenerationError,
    RenderTimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
)
from wkimage.models.schemas import ErrorResponse
from wkimage.api.routes.health import router as health_router
from wkimage.api.routes.render import get_converter, router as render_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    logger.info("Starting FastAPI application")

    converter = app.dependency_overrides.get(get_converter, get_converter)()
    if not converter.is_available():
        logger.warning(
            "wkhtmltoimage executable not found, renders will fail",
            tool_path=str(converter.executable_path),
        )

    try:
        yield
    finally:
        logger.info("Shutting down FastAPI application")


def error_status(exc: ImageGenerationError) -> tuple[int, str]:
    """HTTP status and error code for an image generation error."""
    if isinstance(exc, ToolNotFoundError):
        return 503, "TOOL_NOT_FOUND"
    if isinstance(exc, RenderTimeoutError):
        return 504, "RENDER_TIMEOUT"
    if isinstance(exc, ToolExecutionError):
        return 502, "TOOL_EXECUTION_FAILED"
    return 500, "IMAGE_GENERATION_ERROR"


def create_app() -> FastAPI:
    """Create the FastAPI application."""
    settings = get_settings()
    setup_logging()
    app = FastAPI(
        title="wkimage",
        description="Render HTML to images with wkhtmltoimage",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    @app.middleware("http")
    async def add_request_id(request: Request, call_next) -> Any:  # type: ignore
        """Add request ID to all requests."""
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ImageGenerationError)
    async def image_generation_exception_handler(
        request: Request, exc: ImageGenerationError
    ) -> JSONResponse:
        """Handle image generation errors with specific error codes."""
        status_code, error_code = error_status(exc)

        details: dict[str, Any] = {"message": str(exc), "exit_code": exc.error_code}
        if isinstance(exc, RenderTimeoutError):
            details["timeout"] = exc.timeout
        elif isinstance(exc, ToolExecutionError):
            details["last_error_line"] = exc.last_error_line

        error_response = ErrorResponse(
            error="Image generation failed",
            error_code=error_code,
            details=details if settings.debug else None,
            request_id=getattr(request.state, "request_id", None),
        )

        logger.error(
            "Image generation error",
            error_code=error_code,
            error_message=str(exc),
            request_id=error_response.request_id,
        )

        return JSONResponse(status_code=status_code, content=error_response.model_dump(mode="json"))

    app.include_router(health_router)
    app.include_router(render_router)
    return app


app = create_app()
