"""
Health Routes
=============

FastAPI routes for health check endpoints.
"""

from fastapi import APIRouter, Depends

from wkimage import __version__
from wkimage.core.rendering.converter import HtmlToImageConverter
from wkimage.models.schemas import HealthStatus

from .render import get_converter

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthStatus)
async def health_check(converter: HtmlToImageConverter = Depends(get_converter)) -> HealthStatus:
    """Report whether the renderer executable is in place."""
    available = converter.is_available()
    return HealthStatus(
        status="healthy" if available else "degraded",
        version=__version__,
        tool_available=available,
        tool_path=str(converter.executable_path),
    )
