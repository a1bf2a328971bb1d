"""Terminal color utilities for render error messages.

ANSI color codes with automatic TTY detection and NO_COLOR support.
"""

from __future__ import annotations

import os
import sys
from typing import Literal

_COLORS = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "bright_red": "\033[91m",
    "bright_green": "\033[92m",
}

ColorName = Literal[
    "reset", "bold", "dim", "cyan", "green", "yellow", "bright_red", "bright_green"
]


def _should_use_colors() -> bool:
    """Check if the terminal supports colors and the user allows them.

    Respects:
        - NO_COLOR environment variable (https://no-color.org/)
        - FORCE_COLOR environment variable (overrides NO_COLOR)
        - sys.stdout.isatty() for TTY detection
    """
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _should_use_colors()


def colorize(text: str, *colors: ColorName) -> str:
    """Apply ANSI color codes to text.

    Returns the text unchanged when colors are disabled or none are given.
    """
    if not _USE_COLORS or not colors:
        return text
    prefix = "".join(_COLORS.get(color, "") for color in colors)
    if not prefix:
        return text
    return f"{prefix}{text}{_COLORS['reset']}"


def error_code(text: str) -> str:
    """Color text as an error code (bright red + bold)."""
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    """Color text as a file location (cyan)."""
    return colorize(text, "cyan")


def hint(text: str) -> str:
    """Color text as a hint (green)."""
    return colorize(text, "green")


def suggestion(text: str) -> str:
    """Color text as a 'Did you mean?' suggestion (bright_green + bold)."""
    return colorize(text, "bright_green", "bold")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Format error header with optional code.

    Example:
        >>> format_error_header("T-EXP-002", "Undefined variable")
        '\033[91m\033[1mT-EXP-002\033[0m: Undefined variable'
    """
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_expression(source: str, column: int | None = None) -> str:
    """Format an expression with an optional caret under the failing column."""
    parts = [f"{dim_text('   |')} {colorize(source, 'yellow')}"]
    if column is not None:
        caret = " " * column + "^"
        parts.append(f"{dim_text('   |')} {colorize(caret, 'bright_red')}")
    return "\n".join(parts)
