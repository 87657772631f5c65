"""
Rendering Errors
================

Exception taxonomy for wkhtmltoimage runs.
"""

from pathlib import Path
from typing import Optional


# Error code reported when the renderer or its output drain times out
TIMEOUT_ERROR_CODE = -2


class ImageGenerationError(Exception):
    """Exception raised when image generation fails."""

    error_code: Optional[int] = None


class ToolNotFoundError(ImageGenerationError):
    """The wkhtmltoimage executable does not exist at the resolved path."""

    def __init__(self, tool_path: Path):
        super().__init__(f"Cannot find WkHtmlToImage: {tool_path}")
        self.tool_path = tool_path


class ToolExecutionError(ImageGenerationError):
    """wkhtmltoimage exited with an error exit code."""

    def __init__(self, exit_code: int, message: str, last_error_line: str = ""):
        super().__init__(message)
        self.exit_code = exit_code
        self.last_error_line = last_error_line

    @property
    def error_code(self) -> int:  # type: ignore[override]
        return self.exit_code


class RenderTimeoutError(ToolExecutionError):
    """wkhtmltoimage or its output drain exceeded the execution timeout."""

    def __init__(self, timeout: float, message: str):
        super().__init__(TIMEOUT_ERROR_CODE, message)
        self.timeout = timeout
