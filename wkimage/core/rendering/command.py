"""
Command Line Builder
====================

Composes the wkhtmltoimage arguments from render options and the resolved
input/output specs, both as the argv list used to launch the tool and as the
equivalent argument string shown in logs.
"""

import shlex
import sys
from typing import List, Optional

from wkimage.models.schemas import RenderOptions

# wkhtmltoimage reads from stdin / writes to stdout when given "-"
STDIN_PLACEHOLDER = "-"
STDOUT_PLACEHOLDER = "-"


def format_number(value: float) -> str:
    """Fixed-point number formatting, independent of the host locale."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text or "0"


def quote_spec(spec: str) -> str:
    return '"' + spec.replace('"', '\\"') + '"'


def option_arguments(options: RenderOptions) -> List[str]:
    """Flags derived from the options, in wkhtmltoimage usage order."""
    arguments = ["-q"]

    if options.zoom != 1.0:
        arguments += ["--zoom", format_number(options.zoom)]
    if options.width > 0:
        arguments += ["--width", str(options.width)]
    if options.height > 0:
        arguments += ["--height", str(options.height)]
    if options.image_format:
        arguments += ["-f", options.image_format]

    return arguments


def split_custom_args(custom_args: str, posix: Optional[bool] = None) -> List[str]:
    """
    Split raw extra arguments into argv entries.

    Windows rules (``posix=False``) keep backslashes, so paths such as
    ``C:\\styles\\a.css`` or UNC shares survive; one pair of surrounding double
    quotes is removed from each entry.
    """
    if posix is None:
        posix = sys.platform != "win32"
    if posix:
        return shlex.split(custom_args)

    arguments = []
    for token in shlex.split(custom_args, posix=False):
        if len(token) >= 2 and token[0] == token[-1] == '"':
            token = token[1:-1]
        arguments.append(token)
    return arguments


def build_arguments(options: RenderOptions, source_spec: str, sink_spec: str) -> List[str]:
    """
    Build the wkhtmltoimage argv (without the executable).

    The source and sink specs are passed as single entries exactly as given.
    """
    arguments = option_arguments(options)
    if options.custom_args:
        arguments += split_custom_args(options.custom_args)
    arguments += [source_spec, sink_spec]
    return arguments


def build_command_line(options: RenderOptions, source_spec: str, sink_spec: str) -> str:
    """
    Build the wkhtmltoimage argument string.

    Args:
        options: Render options
        source_spec: Input path/URL or STDIN_PLACEHOLDER
        sink_spec: Output path or STDOUT_PLACEHOLDER

    Returns:
        Argument string, e.g. '-q --width 800 -f png "-" "-"'
    """
    parts = option_arguments(options)

    # Verbatim, quoting is up to the caller
    if options.custom_args:
        parts.append(options.custom_args)

    parts.append(quote_spec(source_spec))
    parts.append(quote_spec(sink_spec))
    return " ".join(parts)
