"""
HTML to Image Converter
=======================

Public facade over wkhtmltoimage. Renders HTML content, files or URLs into
image bytes, caller streams or files, and raises typed errors on failure.
"""

import asyncio
import io
import os
import time
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Optional, Union

from wkimage.config.logging import get_logger
from wkimage.config.settings import Settings, default_executable_name, get_settings
from wkimage.models.schemas import ProcessPriority, RenderOptions, RenderResult
from .command import build_arguments, build_command_line
from .exceptions import ImageGenerationError
from .exit_codes import check_exit_code
from .process_session import LineCallback, ProcessSession
from .targets import RenderSink, RenderSource

logger = get_logger(__name__)

PathLike = Union[str, "os.PathLike[str]"]
FormatLike = Union[str, Enum]


def normalize_format(image_format: Optional[FormatLike]) -> Optional[str]:
    """Plain format tag for an ImageFormat member or string."""
    if isinstance(image_format, Enum):
        return str(image_format.value)
    return image_format


class HtmlToImageConverter:
    """
    HTML to image converter (wrapper for the wkhtmltoimage command line tool).

    Attributes mirror the tool options and may be changed between calls; each
    render snapshots them into an immutable RenderOptions.

    The ``generate_image*`` methods block and run their own event loop;
    coroutines must await ``render_async`` instead.

    Args:
        tool_path: Directory where wkhtmltoimage is located (default: cwd)
        executable_name: wkhtmltoimage file name (platform default)
        zoom: Zoom factor
        width: Minimum image width, 0 = auto
        height: Minimum image height, 0 = auto
        custom_args: Extra raw command line arguments
        process_priority: wkhtmltoimage process priority
        execution_timeout: Maximum execution time in seconds, None = no limit
        log_received: Called with every stderr line of the tool. Quiet mode
            (-q) is always on, so pass ``--log-level info`` style custom args
            to receive more than warnings and errors.
    """

    def __init__(
        self,
        tool_path: Optional[PathLike] = None,
        executable_name: Optional[str] = None,
        zoom: float = 1.0,
        width: int = 0,
        height: int = 0,
        custom_args: str = "",
        process_priority: ProcessPriority = ProcessPriority.NORMAL,
        execution_timeout: Optional[float] = None,
        log_received: Optional[LineCallback] = None,
    ):
        self.tool_path = Path(tool_path) if tool_path is not None else Path.cwd()
        self.executable_name = executable_name or default_executable_name()
        self.zoom = zoom
        self.width = width
        self.height = height
        self.custom_args = custom_args
        self.process_priority = process_priority
        self.execution_timeout = execution_timeout
        self.log_received = log_received
        self.logger: Any = logger.bind(component="converter")

    @classmethod
    def from_settings(
        cls, settings: Optional[Settings] = None, log_received: Optional[LineCallback] = None
    ) -> "HtmlToImageConverter":
        """Create a converter from application settings."""
        settings = settings or get_settings()
        return cls(
            tool_path=settings.tool_path,
            executable_name=settings.executable_name,
            zoom=settings.zoom,
            width=settings.width,
            height=settings.height,
            custom_args=settings.custom_args,
            process_priority=settings.process_priority,
            execution_timeout=settings.execution_timeout,
            log_received=log_received,
        )

    @property
    def executable_path(self) -> Path:
        return self.tool_path / self.executable_name

    def is_available(self) -> bool:
        return self.executable_path.exists()

    def build_options(self, image_format: Optional[FormatLike] = None, **overrides: Any) -> RenderOptions:
        """Snapshot the current settings into RenderOptions."""
        values = {
            "zoom": self.zoom,
            "width": self.width,
            "height": self.height,
            "image_format": normalize_format(image_format),
            "custom_args": self.custom_args,
            "priority": self.process_priority,
            "execution_timeout": self.execution_timeout,
        }
        values.update(overrides)
        return RenderOptions(**values)

    async def render_async(
        self,
        source: RenderSource,
        sink: RenderSink,
        image_format: Optional[FormatLike] = None,
        options: Optional[RenderOptions] = None,
    ) -> RenderResult:
        """
        Run wkhtmltoimage once.

        Args:
            source: HTML content or file path/URL
            sink: Output stream or destination file
            image_format: Output format, ignored when ``options`` is given
            options: Explicit render options

        Returns:
            RenderResult of the successful run

        Raises:
            ToolNotFoundError: If the executable does not exist
            RenderTimeoutError: If the run exceeded the execution timeout
            ToolExecutionError: If wkhtmltoimage reported a failure
            ImageGenerationError: On any other failure
        """
        options = options or self.build_options(image_format)
        started = time.perf_counter()
        session: Optional[ProcessSession] = None

        self.logger.info(
            "Generating image",
            source="content" if source.is_content else source.location,
            sink="stream" if sink.is_stream else str(sink.path),
            image_format=options.image_format,
        )

        try:
            self.logger.debug(
                "wkhtmltoimage command line",
                command_line=build_command_line(options, source.spec, sink.spec),
            )
            session = ProcessSession(
                self.tool_path,
                self.executable_name,
                build_arguments(options, source.spec, sink.spec),
                redirect_stdin=source.is_content,
                redirect_stdout=sink.is_stream,
                priority=options.priority,
                line_callback=self.log_received,
            )
            await session.start()
            outcome = await session.run(
                input_data=source.content,
                output_stream=sink.stream,
                output_path=sink.path,
                timeout=options.execution_timeout,
            )
            check_exit_code(outcome)

        except ImageGenerationError as e:
            self.logger.error("Image generation error", error=str(e), error_code=e.error_code)
            raise
        except Exception as e:
            self.logger.error("Image generation error", error=str(e), exc_info=True)
            raise ImageGenerationError(f"Image generation failed: {e}") from e
        finally:
            if session is not None:
                await session.close()

        result = RenderResult(
            output_size=outcome.output_size,
            exit_code=outcome.exit_code,
            last_error_line=outcome.last_error_line,
            elapsed=time.perf_counter() - started,
        )
        self.logger.info(
            "Image generation completed",
            output_size=result.output_size,
            exit_code=result.exit_code,
            elapsed=round(result.elapsed, 3),
        )
        return result

    def _render(self, source: RenderSource, sink: RenderSink, image_format: Optional[FormatLike]) -> RenderResult:
        # Synchronous surface: the async core runs on its own event loop
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.render_async(source, sink, image_format))
        raise RuntimeError(
            "Synchronous rendering cannot run inside a running event loop; "
            "await HtmlToImageConverter.render_async() instead"
        )

    def generate_image(self, html_content: Union[str, bytes], image_format: FormatLike) -> bytes:
        """
        Generate image by specified HTML content.

        Args:
            html_content: HTML document (str is encoded as UTF-8)
            image_format: Resulting image format (see ImageFormat)

        Returns:
            Image bytes
        """
        output = io.BytesIO()
        self.generate_image_to_stream(html_content, image_format, output)
        return output.getvalue()

    def generate_image_to_stream(
        self, html_content: Union[str, bytes], image_format: FormatLike, output_stream: BinaryIO
    ) -> RenderResult:
        """Generate image by specified HTML content and write it into ``output_stream``."""
        if image_format is None:
            raise ValueError("image_format is required")
        return self._render(
            RenderSource.from_content(html_content), RenderSink.to_stream(output_stream), image_format
        )

    def generate_image_from_file(self, html_file_path: PathLike, image_format: FormatLike) -> bytes:
        """
        Generate image for specified HTML file path or URL.

        Args:
            html_file_path: Path to HTML file or absolute URL
            image_format: Resulting image format (see ImageFormat)

        Returns:
            Image bytes
        """
        output = io.BytesIO()
        self.generate_image_from_file_to_stream(html_file_path, image_format, output)
        return output.getvalue()

    def generate_image_from_file_to_stream(
        self, html_file_path: PathLike, image_format: FormatLike, output_stream: BinaryIO
    ) -> RenderResult:
        """Generate image for specified HTML file or URL and write it into ``output_stream``."""
        if image_format is None:
            raise ValueError("image_format is required")
        return self._render(
            RenderSource.from_location(html_file_path), RenderSink.to_stream(output_stream), image_format
        )

    def generate_image_from_file_to_path(
        self,
        html_file_path: PathLike,
        image_format: Optional[FormatLike],
        output_image_path: PathLike,
    ) -> RenderResult:
        """
        Generate image for specified HTML file or URL and let wkhtmltoimage write
        it to ``output_image_path``.

        An existing file at the destination is deleted first. With
        ``image_format=None`` the tool picks the format from the file extension.
        """
        sink = RenderSink.to_path(output_image_path)
        assert sink.path is not None
        if sink.path.exists():
            sink.path.unlink()
        return self._render(RenderSource.from_location(html_file_path), sink, image_format)
