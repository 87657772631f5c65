"""
Render Sources and Sinks
========================

Where wkhtmltoimage reads its HTML from and where the image goes.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

from .command import STDIN_PLACEHOLDER, STDOUT_PLACEHOLDER


@dataclass(frozen=True)
class RenderSource:
    """Literal HTML content (piped through stdin) or a file path/URL."""

    content: Optional[bytes] = None
    location: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.content is None) == (self.location is None):
            raise ValueError("RenderSource needs exactly one of content or location")

    @classmethod
    def from_content(cls, content: Union[str, bytes]) -> "RenderSource":
        if content is None:
            raise ValueError("HTML content is required")
        if isinstance(content, str):
            content = content.encode("utf-8")
        return cls(content=bytes(content))

    @classmethod
    def from_location(cls, location: Union[str, "os.PathLike[str]"]) -> "RenderSource":
        if location is None:
            raise ValueError("HTML file path or URL is required")
        return cls(location=os.fspath(location))

    @property
    def is_content(self) -> bool:
        return self.content is not None

    @property
    def spec(self) -> str:
        """Command line spec of the input."""
        return STDIN_PLACEHOLDER if self.location is None else self.location


@dataclass(frozen=True)
class RenderSink:
    """An open binary stream (drained from stdout) or a destination file."""

    stream: Optional[BinaryIO] = None
    path: Optional[Path] = None

    def __post_init__(self) -> None:
        if (self.stream is None) == (self.path is None):
            raise ValueError("RenderSink needs exactly one of stream or path")

    @classmethod
    def to_stream(cls, stream: BinaryIO) -> "RenderSink":
        if stream is None:
            raise ValueError("Output stream is required")
        return cls(stream=stream)

    @classmethod
    def to_path(cls, path: Union[str, "os.PathLike[str]"]) -> "RenderSink":
        if path is None:
            raise ValueError("Output file path is required")
        return cls(path=Path(path))

    @property
    def is_stream(self) -> bool:
        return self.stream is not None

    @property
    def spec(self) -> str:
        """Command line spec of the output."""
        return STDOUT_PLACEHOLDER if self.path is None else str(self.path)
