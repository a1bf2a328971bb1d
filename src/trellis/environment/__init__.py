"""Engine configuration, file loading and errors."""

from trellis.environment.exceptions import (
    ErrorCode,
    ExpressionError,
    ExpressionSyntaxError,
    MalformedDirectiveError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    UndefinedError,
    UnsupportedExpressionError,
)
from trellis.environment.loaders import DictLoader, FileSystemLoader
from trellis.environment.core import TemplateEngine

__all__ = [
    "DictLoader",
    "ErrorCode",
    "ExpressionError",
    "ExpressionSyntaxError",
    "FileSystemLoader",
    "MalformedDirectiveError",
    "TemplateEngine",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "UndefinedError",
    "UnsupportedExpressionError",
]
