"""
Unit Tests for HTML to Image Converter
======================================

End-to-end tests of the converter facade against the fake wkhtmltoimage.
"""

import io
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from wkimage.config.settings import Settings
from wkimage.core.rendering.converter import HtmlToImageConverter, normalize_format
from wkimage.core.rendering.exceptions import (
    TIMEOUT_ERROR_CODE,
    ImageGenerationError,
    RenderTimeoutError,
    ToolExecutionError,
    ToolNotFoundError,
)
from wkimage.core.rendering.process_session import STDERR_LINE_LIMIT
from wkimage.models.schemas import ImageFormat, ProcessPriority, RenderResult

from tests.utils.fake_tool import EXECUTABLE_NAME, posix_only, read_recorded_args

HOST_NOT_FOUND = "Exit with code 1 due to network error: HostNotFoundError"


class TestConverterConfiguration:
    """Test defaults and option snapshots."""

    def test_defaults(self):
        """A bare converter uses the wkhtmltoimage defaults."""
        converter = HtmlToImageConverter()

        assert converter.tool_path == Path.cwd()
        assert converter.executable_name in ("wkhtmltoimage", "wkhtmltoimage.exe")
        assert converter.zoom == 1.0
        assert converter.width == 0
        assert converter.height == 0
        assert converter.custom_args == ""
        assert converter.process_priority == ProcessPriority.NORMAL
        assert converter.execution_timeout is None

    def test_from_settings(self, tmp_path: Path):
        """Settings become converter attributes."""
        settings = Settings(
            tool_path=tmp_path,
            executable_name="wk",
            zoom=1.25,
            width=640,
            height=480,
            custom_args="--quality 90",
            process_priority=ProcessPriority.BELOW_NORMAL,
            execution_timeout=12,
        )

        converter = HtmlToImageConverter.from_settings(settings)

        assert converter.executable_path == tmp_path / "wk"
        assert converter.zoom == 1.25
        assert (converter.width, converter.height) == (640, 480)
        assert converter.custom_args == "--quality 90"
        assert converter.process_priority == ProcessPriority.BELOW_NORMAL
        assert converter.execution_timeout == 12

    def test_build_options_snapshot(self):
        """Options capture the current attributes plus overrides."""
        converter = HtmlToImageConverter(zoom=2.0, width=100)

        options = converter.build_options(ImageFormat.JPEG, width=300)
        converter.zoom = 3.0

        assert options.zoom == 2.0
        assert options.width == 300
        assert options.image_format == "jpg"

    def test_normalize_format(self):
        """Enum members and strings both become plain tags."""
        assert normalize_format(ImageFormat.BMP) == "bmp"
        assert normalize_format("gif") == "gif"
        assert normalize_format(None) is None

    def test_missing_content_rejected(self, converter):
        """None content is an argument error, not a render failure."""
        with pytest.raises(ValueError):
            converter.generate_image(None, "png")  # type: ignore[arg-type]

    def test_missing_format_rejected(self, converter):
        """Stream renders need a format."""
        with pytest.raises(ValueError):
            converter.generate_image("<p/>", None)  # type: ignore[arg-type]

    @pytest.mark.asyncio
    async def test_sync_call_inside_event_loop_rejected(self, converter):
        """Blocking calls from a coroutine fail clearly without starting a render."""
        with patch("wkimage.core.rendering.converter.ProcessSession") as mock_session:
            with pytest.raises(RuntimeError, match="render_async"):
                converter.generate_image("<p/>", "png")

        mock_session.assert_not_called()


class TestToolNotFound:
    """Test failing fast on a missing executable."""

    def test_missing_executable(self, tmp_path: Path):
        """No process is spawned and the specific error surfaces."""
        converter = HtmlToImageConverter(tool_path=tmp_path, executable_name="absent")

        with patch("asyncio.base_events.BaseEventLoop.subprocess_exec") as mock_exec:
            with pytest.raises(ToolNotFoundError, match="Cannot find WkHtmlToImage"):
                converter.generate_image("<p>hi</p>", "png")

        mock_exec.assert_not_called()
        assert not converter.is_available()


@posix_only
class TestContentRendering:
    """Test rendering literal HTML through stdin/stdout."""

    def test_generate_image_returns_bytes(self, converter, sample_html):
        """Content is piped in and the drained output returned."""
        image = converter.generate_image(sample_html, ImageFormat.PNG)

        assert image == sample_html.encode("utf-8")

    def test_byte_transfer_integrity(self, converter):
        """N bytes in, N bytes drained, with no timeout set."""
        payload = bytes(range(256)) * 4099

        output = io.BytesIO()
        result = converter.generate_image_to_stream(payload, "png", output)

        assert isinstance(result, RenderResult)
        assert result.output_size == len(payload)
        assert output.getvalue() == payload

    def test_command_line(self, converter, tmp_path, monkeypatch):
        """Options reach the tool with stdin/stdout placeholders."""
        argv_file = tmp_path / "argv.txt"
        monkeypatch.setenv("FAKE_WK_ARGV_FILE", str(argv_file))
        converter.zoom = 1.5
        converter.width = 1024
        converter.custom_args = "--quality 75"

        converter.generate_image("<p/>", ImageFormat.JPEG)

        assert read_recorded_args(argv_file) == [
            "-q", "--zoom", "1.5", "--width", "1024", "-f", "jpg", "--quality", "75", "-", "-",
        ]

    def test_exit_zero_with_empty_output_succeeds(self, converter, monkeypatch):
        """Exit code 0 is success even without output."""
        monkeypatch.setenv("FAKE_WK_OUTPUT", "empty")

        assert converter.generate_image("<p/>", "png") == b""

    def test_exit_one_benign_line_with_output_succeeds(self, converter, monkeypatch):
        """A known network warning is tolerated when an image was produced."""
        monkeypatch.setenv("FAKE_WK_EXIT", "1")
        monkeypatch.setenv("FAKE_WK_STDERR", HOST_NOT_FOUND)

        assert converter.generate_image("<p/>", "png") == b"<p/>"

    def test_exit_one_benign_line_without_output_fails(self, converter, monkeypatch):
        """The same warning fails the render when nothing was produced."""
        monkeypatch.setenv("FAKE_WK_EXIT", "1")
        monkeypatch.setenv("FAKE_WK_STDERR", HOST_NOT_FOUND)
        monkeypatch.setenv("FAKE_WK_OUTPUT", "empty")

        with pytest.raises(ToolExecutionError) as exc_info:
            converter.generate_image("<p/>", "png")

        assert exc_info.value.exit_code == 1
        assert exc_info.value.last_error_line == HOST_NOT_FOUND

    def test_exit_two_fails(self, converter, monkeypatch):
        """Exit code 2 fails whatever the output."""
        monkeypatch.setenv("FAKE_WK_EXIT", "2")
        monkeypatch.setenv("FAKE_WK_STDERR", HOST_NOT_FOUND)

        with pytest.raises(ToolExecutionError) as exc_info:
            converter.generate_image("<p/>", "png")

        assert exc_info.value.error_code == 2

    def test_log_hook_receives_stderr(self, converter, stderr_lines, monkeypatch):
        """Every stderr line is forwarded to the log hook."""
        monkeypatch.setenv("FAKE_WK_STDERR", "Loading pages (1/2)\n\nRendering (2/2)")

        converter.generate_image("<p/>", "png")

        assert stderr_lines == ["Loading pages (1/2)", "", "Rendering (2/2)"]

    def test_overlong_stderr_line_succeeds(self, converter, stderr_lines, monkeypatch):
        """Exit code 0 succeeds even after a stderr line beyond the reader limit."""
        monkeypatch.setenv("FAKE_WK_LONG_STDERR", str(2 * 1024 * 1024))

        assert converter.generate_image("img", "png") == b"img"
        assert stderr_lines == ["e" * STDERR_LINE_LIMIT]

    def test_timeout_keeps_kind_and_code(self, converter, monkeypatch):
        """A timeout surfaces as RenderTimeoutError carrying the duration."""
        monkeypatch.setenv("FAKE_WK_SLEEP", "30")
        converter.execution_timeout = 0.5

        with pytest.raises(RenderTimeoutError) as exc_info:
            converter.generate_image("<p/>", "png")

        assert exc_info.value.timeout == 0.5
        assert exc_info.value.error_code == TIMEOUT_ERROR_CODE

    def test_output_drain_timeout(self, converter, monkeypatch):
        """Output held open after exit times out without hanging."""
        monkeypatch.setenv("FAKE_WK_LINGER", "3")
        converter.execution_timeout = 1

        with pytest.raises(RenderTimeoutError, match="output read operation"):
            converter.generate_image("<p/>", "png")

    def test_unexpected_error_is_wrapped(self, converter):
        """Faults outside the taxonomy become ImageGenerationError with the cause attached."""
        sink = Mock()
        sink.write.side_effect = OSError("sink broke")

        with pytest.raises(ImageGenerationError, match="Image generation failed: sink broke") as exc_info:
            converter.generate_image_to_stream("<p/>", "png", sink)

        assert type(exc_info.value) is ImageGenerationError
        assert isinstance(exc_info.value.__cause__, OSError)
        assert exc_info.value.error_code is None


@posix_only
class TestSourceRendering:
    """Test rendering from a file path or URL."""

    def test_from_file_returns_bytes(self, converter, html_file, sample_html):
        """The path is passed through and output drained from stdout."""
        image = converter.generate_image_from_file(html_file, "png")

        assert image == sample_html.encode("utf-8")

    def test_from_file_to_stream(self, converter, html_file):
        """Caller supplied streams receive the output."""
        output = io.BytesIO()

        result = converter.generate_image_from_file_to_stream(str(html_file), "png", output)

        assert result.output_size == html_file.stat().st_size
        assert output.getvalue() == html_file.read_bytes()

    def test_path_with_quotes_and_spaces(self, converter, tmp_path, sample_html, monkeypatch):
        """Quotes in a file name reach the tool unchanged."""
        argv_file = tmp_path / "argv.txt"
        monkeypatch.setenv("FAKE_WK_ARGV_FILE", str(argv_file))
        path = tmp_path / 'say "hi" now.html'
        path.write_text(sample_html, encoding="utf-8")

        image = converter.generate_image_from_file(path, "png")

        assert image == sample_html.encode("utf-8")
        assert read_recorded_args(argv_file)[-2:] == [str(path), "-"]

    def test_custom_args_reach_tool_as_entries(self, converter, tmp_path, monkeypatch):
        """Quoted custom arguments arrive as single argv entries."""
        argv_file = tmp_path / "argv.txt"
        monkeypatch.setenv("FAKE_WK_ARGV_FILE", str(argv_file))
        converter.custom_args = "--title 'Trip report' --quality 75"

        converter.generate_image_from_file("https://example.com", "png")

        assert read_recorded_args(argv_file) == [
            "-q", "-f", "png", "--title", "Trip report", "--quality", "75", "https://example.com", "-",
        ]

    def test_url_is_not_piped(self, converter, tmp_path, monkeypatch):
        """URLs go on the command line, stdin stays untouched."""
        argv_file = tmp_path / "argv.txt"
        monkeypatch.setenv("FAKE_WK_ARGV_FILE", str(argv_file))

        image = converter.generate_image_from_file("https://example.com/receipt", "png")

        assert image == b"https://example.com/receipt"
        assert read_recorded_args(argv_file)[-2:] == ["https://example.com/receipt", "-"]

    def test_to_path_reports_file_size(self, converter, tmp_path, monkeypatch):
        """The tool writes the file itself and its size is reported."""
        monkeypatch.setenv("FAKE_WK_OUTPUT", "1234")
        target = tmp_path / "out dir" / "receipt.png"
        target.parent.mkdir()

        result = converter.generate_image_from_file_to_path("https://example.com", "png", target)

        assert result.output_size == 1234
        assert result.exit_code == 0
        assert target.stat().st_size == 1234

    def test_to_path_deletes_stale_file(self, converter, tmp_path, monkeypatch):
        """A previous image cannot mask a run that produced nothing."""
        monkeypatch.setenv("FAKE_WK_OUTPUT", "none")
        monkeypatch.setenv("FAKE_WK_EXIT", "1")
        monkeypatch.setenv("FAKE_WK_STDERR", HOST_NOT_FOUND)
        target = tmp_path / "receipt.png"
        target.write_bytes(b"old image")

        with pytest.raises(ToolExecutionError):
            converter.generate_image_from_file_to_path("https://example.com", "png", target)

        assert not target.exists()

    def test_to_path_without_format(self, converter, tmp_path, monkeypatch):
        """No format flag is passed when the extension decides."""
        argv_file = tmp_path / "argv.txt"
        monkeypatch.setenv("FAKE_WK_ARGV_FILE", str(argv_file))
        target = tmp_path / "page.jpg"

        converter.generate_image_from_file_to_path("https://example.com", None, target)

        assert read_recorded_args(argv_file) == ["-q", "https://example.com", str(target)]
