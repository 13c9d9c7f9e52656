"""
Output rendering and formatting.
"""

from __future__ import annotations

import os
import sys
from typing import Sequence, TextIO

from wcwidth import wcswidth

from .buildinfo import BuildRecord
from .runner import CANCELLED, FAILED, SKIPPED, SUCCEEDED, ActionOutcome, BatchResult


USE_COLOR = os.environ.get("GOREINSTALL_COLOR", "1") == "1"

GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"
RESET = "\033[0m"

STATUS_COLORS = {
    SUCCEEDED: GREEN,
    SKIPPED: "",
    FAILED: RED,
    CANCELLED: YELLOW,
}


def display_width(text: str) -> int:
    """Terminal column width of text (falls back to len for control chars)."""
    width = wcswidth(text)
    return width if width >= 0 else len(text)


def pad(text: str, width: int) -> str:
    return text + " " * max(0, width - display_width(text))


def colorize(text: str, color: str, stream: TextIO | None = None) -> str:
    """Apply color when enabled and the stream is a terminal."""
    stream = stream or sys.stdout
    if not USE_COLOR or not color or not text or not stream.isatty():
        return text
    return f"{color}{text}{RESET}"


def render_table(headers: Sequence[str], rows: Sequence[Sequence[str]]) -> list[str]:
    """Render rows as left-aligned columns separated by two spaces."""
    widths = [display_width(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], display_width(cell))

    lines = ["  ".join(pad(h, widths[i]) for i, h in enumerate(headers)).rstrip()]
    for row in rows:
        lines.append("  ".join(pad(cell, widths[i]) for i, cell in enumerate(row)).rstrip())
    return lines


def render_build_records(records: Sequence[BuildRecord]) -> list[str]:
    """Table of binaries with their compiler and module versions."""
    rows = [
        (
            os.path.basename(r.artifact_path),
            f"go{r.compiler_version}",
            f"{r.path}@{r.module_version}",
        )
        for r in records
    ]
    return render_table(("BINARY", "GO", "MODULE"), rows)


def format_outcome(outcome: ActionOutcome, stream: TextIO | None = None) -> str:
    status = colorize(pad(outcome.status, 9), STATUS_COLORS.get(outcome.status, ""), stream)
    detail = str(outcome.error) if outcome.error is not None else outcome.message
    return f"{status}  {outcome.path}: {detail}" if detail else f"{status}  {outcome.path}"


def print_outcomes(result: BatchResult, stream: TextIO | None = None) -> None:
    """Print one line per binary followed by the summary."""
    stream = stream or sys.stderr
    for outcome in result.outcomes:
        print(format_outcome(outcome, stream), file=stream)
    print(result.summary(), file=stream)
