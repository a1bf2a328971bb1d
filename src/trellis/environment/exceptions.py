"""Exceptions for the Trellis template engine.

Exception Hierarchy:
TemplateError (base)
├── TemplateNotFoundError       # Referenced file missing (also FileNotFoundError)
├── ExpressionError             # Expression could not be evaluated
│   ├── ExpressionSyntaxError   # Expression source does not parse
│   ├── UnsupportedExpressionError  # Syntax outside the allowed subset
│   └── UndefinedError          # Unknown variable name
├── MalformedDirectiveError     # Structurally invalid directive tag
└── TemplateRuntimeError        # Render-time failure (import depth)

Propagation:
Errors are raised where the failure happens and travel unchanged up to
``TemplateEngine.render()``. The engine never wraps or swallows them, so a
caller can catch ``TemplateError`` for engine failures and ``OSError`` for
anything the file system raised on its own.

Example:
    ```
    T-EXP-002: Undefined variable 'usr' in views/index.html. Did you mean 'user'?
      Import stack:
        • views/index.html
        • views/partials/nav.html
    ```

"""

from __future__ import annotations

from difflib import get_close_matches
from enum import Enum

from trellis.environment import terminal


class ErrorCode(Enum):
    """Searchable error codes for render failures.

    Format: T-{CATEGORY}-{NUMBER}
    Categories: TPL (file loading), EXP (expressions), DIR (directives),
    RUN (runtime)
    """

    TEMPLATE_NOT_FOUND = "T-TPL-001"

    EXPRESSION_SYNTAX = "T-EXP-001"
    UNDEFINED_VARIABLE = "T-EXP-002"
    UNSUPPORTED_EXPRESSION = "T-EXP-003"

    ORPHAN_BRANCH = "T-DIR-001"
    INVALID_REPEAT = "T-DIR-002"
    INVALID_IMPORT = "T-DIR-003"
    MISSING_CONDITION = "T-DIR-004"

    IMPORT_DEPTH = "T-RUN-001"

    @property
    def category(self) -> str:
        """Error category (e.g., 'expression', 'directive')."""
        prefix = self.value.split("-")[1]
        return {
            "TPL": "template",
            "EXP": "expression",
            "DIR": "directive",
            "RUN": "runtime",
        }.get(prefix, "unknown")


def format_template_stack(stack: list[str] | None) -> str:
    """Format the chain of imported templates for error messages.

    Example:
        >>> print(format_template_stack(["index.html", "partials/nav.html"]))
          Import stack:
            • index.html
            • partials/nav.html
    """
    if not stack:
        return ""

    lines = [f"  {terminal.dim_text('Import stack:')}"]
    for template_name in stack:
        lines.append(f"    • {terminal.location(template_name)}")
    return "\n".join(lines)


class TemplateError(Exception):
    """Base exception for all Trellis render errors.

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format error as a one-screen diagnostic without traceback noise."""
        header = str(self)
        if self.code and self.code.value not in header:
            header = terminal.format_error_header(self.code.value, header)
        return header


class TemplateNotFoundError(TemplateError, FileNotFoundError):
    """A referenced template, import, script or style file does not exist.

    Subclasses ``FileNotFoundError`` so callers that only care about the
    file system can handle it without importing Trellis.

    Example:
            >>> engine.render("missing.html")
        TemplateNotFoundError: File '/srv/views/missing.html' not found
    """

    code: ErrorCode | None = ErrorCode.TEMPLATE_NOT_FOUND

    def __init__(self, path: str, message: str | None = None):
        self.path = path
        super().__init__(message or f"File '{path}' not found")

    def __str__(self) -> str:
        return self.args[0]


class ExpressionError(TemplateError):
    """An expression inside a directive or injection could not be evaluated.

    Attributes:
        expression: Source text of the failing expression
        template_name: Template being processed when the error occurred
        template_stack: Import chain leading to that template
    """

    def __init__(
        self,
        message: str,
        *,
        expression: str | None = None,
        template_name: str | None = None,
        template_stack: list[str] | None = None,
        column: int | None = None,
    ):
        self.message = message
        self.expression = expression
        self.template_name = template_name
        self.template_stack = template_stack or []
        self.column = column
        super().__init__(self._format_message())

    def _location(self) -> str:
        if self.template_name:
            return f" in {terminal.location(self.template_name)}"
        return ""

    def _format_message(self) -> str:
        parts = [f"{self.message}{self._location()}"]
        if self.expression is not None:
            parts.append(terminal.format_expression(self.expression, self.column))
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        return "\n".join(parts)


class ExpressionSyntaxError(ExpressionError):
    """Expression source is not valid expression syntax."""

    code: ErrorCode | None = ErrorCode.EXPRESSION_SYNTAX


class UnsupportedExpressionError(ExpressionError):
    """Expression uses syntax outside the restricted subset.

    Raised for lambdas, comprehensions, imports, private attribute access and
    anything else the evaluator refuses to interpret.
    """

    code: ErrorCode | None = ErrorCode.UNSUPPORTED_EXPRESSION


class UndefinedError(ExpressionError):
    """Raised when an expression references a name that is not in scope.

    If ``available_names`` is provided, a "Did you mean?" suggestion is
    included when a close match is found.

    Example:
            >>> engine.render("index.html", {"user": user})  # template uses @{ usr }
        UndefinedError: Undefined variable 'usr' in index.html. Did you mean 'user'?
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_VARIABLE

    def __init__(
        self,
        name: str,
        *,
        available_names: frozenset[str] | None = None,
        **kwargs,
    ):
        self.name = name
        self._available_names = available_names
        super().__init__(f"Undefined variable '{name}'", **kwargs)

    def _format_message(self) -> str:
        msg = f"{self.message}{self._location()}"
        if self._available_names:
            matches = get_close_matches(self.name, self._available_names, n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{terminal.suggestion(matches[0])}'?"
        parts = [msg]
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        return "\n".join(parts)


class MalformedDirectiveError(TemplateError):
    """A directive tag is structurally invalid.

    Raised for an ``elif``/``else`` without a preceding ``if``, a ``repeat``
    without ``times`` or ``from``/``to``, and an ``import`` that has no
    ``src`` or points at an unsupported file type.
    """

    def __init__(
        self,
        message: str,
        *,
        tag: str,
        code: ErrorCode,
        template_name: str | None = None,
    ):
        self.message = message
        self.tag = tag
        self.code = code
        self.template_name = template_name
        location = f" in {terminal.location(template_name)}" if template_name else ""
        super().__init__(f"Malformed <{tag}> directive{location}: {message}")


class TemplateRuntimeError(TemplateError):
    """Render-time failure that is not tied to a single expression.

    Attributes:
        message: Error description
        template_name: Template being processed
        template_stack: Import chain leading to it
        suggestion: Actionable fix suggestion
    """

    code: ErrorCode | None = ErrorCode.IMPORT_DEPTH

    def __init__(
        self,
        message: str,
        *,
        template_name: str | None = None,
        template_stack: list[str] | None = None,
        suggestion: str | None = None,
    ):
        self.message = message
        self.template_name = template_name
        self.template_stack = template_stack or []
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [f"Runtime Error: {self.message}"]
        if self.template_name:
            parts.append(f"  Location: {terminal.location(self.template_name)}")
        if self.template_stack:
            parts.append(format_template_stack(self.template_stack))
        if self.suggestion:
            parts.append(f"  {terminal.hint('Suggestion:')} {self.suggestion}")
        return "\n".join(parts)
