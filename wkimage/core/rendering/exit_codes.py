"""
Exit Code Classification
========================

Maps a finished wkhtmltoimage run to a success/failure verdict.

wkhtmltoimage exits with code 1 for recoverable network problems while still
producing a usable image, so code 1 is accepted when the last stderr line is a
known benign message and the output is not empty.
"""

from typing import AbstractSet

from wkimage.models.schemas import ExitOutcome
from .exceptions import ToolExecutionError

# Exact, trimmed stderr lines tolerated with exit code 1
BENIGN_ERROR_LINES: AbstractSet[str] = frozenset(
    {
        "Exit with code 1 due to network error: ContentNotFoundError",
        "QFont::setPixelSize: Pixel size <= 0",
        "Exit with code 1 due to network error: ProtocolUnknownError",
        "Exit with code 1 due to network error: HostNotFoundError",
        "Exit with code 1 due to network error: ContentOperationNotPermittedError",
        "Exit with code 1 due to network error: UnknownContentError",
    }
)


def is_successful_exit(
    exit_code: int,
    last_error_line: str,
    output_not_empty: bool,
    benign_lines: AbstractSet[str] = BENIGN_ERROR_LINES,
) -> bool:
    """Return the verdict for a finished run."""
    if exit_code == 0:
        return True
    if exit_code == 1:
        return last_error_line.strip() in benign_lines and output_not_empty
    return False


def check_exit_code(outcome: ExitOutcome) -> None:
    """
    Raise if the run failed.

    Raises:
        ToolExecutionError: If the outcome is classified as a failure
    """
    if not is_successful_exit(
        outcome.exit_code, outcome.last_error_line, outcome.output_not_empty
    ):
        raise ToolExecutionError(
            outcome.exit_code,
            outcome.last_error_line or f"WkHtmlToImage exited with code {outcome.exit_code}",
            outcome.last_error_line,
        )
