"""
Test Configuration
==================

Pytest configuration with fixtures for all test types.
Provides a fake wkhtmltoimage executable and converters wired to it.
"""

import os

# Must be set before wkimage configures logging on import
os.environ.setdefault("WKIMAGE_ENVIRONMENT", "testing")
os.environ.setdefault("WKIMAGE_LOG_LEVEL", "DEBUG")

from pathlib import Path
from typing import List

import pytest

from wkimage.core.rendering.converter import HtmlToImageConverter
from tests.utils.fake_tool import EXECUTABLE_NAME, FAKE_TOOL_ENV, install_fake_tool


@pytest.fixture(autouse=True)
def clean_fake_tool_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test with the fake tool in its default behaviour."""
    for name in FAKE_TOOL_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tool_dir(tmp_path: Path) -> Path:
    """Directory holding the fake wkhtmltoimage."""
    install_fake_tool(tmp_path / "tool")
    return tmp_path / "tool"


@pytest.fixture
def stderr_lines() -> List[str]:
    """Collects lines passed to the converter log hook."""
    return []


@pytest.fixture
def converter(tool_dir: Path, stderr_lines: List[str]) -> HtmlToImageConverter:
    """Converter driving the fake wkhtmltoimage."""
    return HtmlToImageConverter(
        tool_path=tool_dir,
        executable_name=EXECUTABLE_NAME,
        log_received=stderr_lines.append,
    )


@pytest.fixture
def sample_html() -> str:
    return "<html><body><h1>Trip report</h1><p>Ünïcode ✓</p></body></html>"


@pytest.fixture
def html_file(tmp_path: Path, sample_html: str) -> Path:
    path = tmp_path / "page with spaces.html"
    path.write_text(sample_html, encoding="utf-8")
    return path
