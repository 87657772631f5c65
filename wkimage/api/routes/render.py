"""
Render Routes
=============

FastAPI routes for HTML to image rendering.
"""

import io
from functools import lru_cache

from fastapi import APIRouter, Depends, Response

from wkimage.config.logging import get_logger
from wkimage.core.rendering.converter import HtmlToImageConverter
from wkimage.core.rendering.targets import RenderSink, RenderSource
from wkimage.models.schemas import RenderRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Rendering"])


@lru_cache(maxsize=1)
def get_converter() -> HtmlToImageConverter:
    """Converter configured from application settings."""
    return HtmlToImageConverter.from_settings()


@router.post(
    "/render",
    response_class=Response,
    responses={200: {"content": {"image/png": {}, "image/jpeg": {}, "image/bmp": {}}}},
)
async def render(
    request: RenderRequest, converter: HtmlToImageConverter = Depends(get_converter)
) -> Response:
    """Render HTML content or a URL and return the image bytes."""
    if request.html is not None:
        source = RenderSource.from_content(request.html)
    else:
        source = RenderSource.from_location(request.url)  # type: ignore[arg-type]

    options = converter.build_options(request.image_format, **request.option_overrides())
    output = io.BytesIO()
    result = await converter.render_async(source, RenderSink.to_stream(output), options=options)

    logger.info("Render request completed", output_size=result.output_size)
    return Response(
        content=output.getvalue(),
        media_type=request.image_format.media_type,
        headers={"X-Render-Time": f"{result.elapsed:.3f}"},
    )
