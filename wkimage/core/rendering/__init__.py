"""
Rendering Module
===============

wkhtmltoimage process orchestration.

Components:
- command: Command line composition
- exit_codes: Exit code classification
- stream_pump: Background stdout draining
- process_session: Process launch, stderr monitoring, timeout handling
- converter: Public HTML to image facade
"""

from .converter import HtmlToImageConverter
from .exceptions import (
    TIMEOUT_ERROR_CODE,
    ImageGenerationError,
    RenderTimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
)
from .targets import RenderSink, RenderSource

__all__ = [
    "HtmlToImageConverter",
    "ImageGenerationError",
    "RenderSink",
    "RenderSource",
    "RenderTimeoutError",
    "TIMEOUT_ERROR_CODE",
    "ToolExecutionError",
    "ToolNotFoundError",
]
