"""Error hierarchy, messages and terminal formatting."""

import pytest

from trellis import (
    ErrorCode,
    ExpressionEvaluator,
    ExpressionSyntaxError,
    MalformedDirectiveError,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    UndefinedError,
)
from trellis.environment import terminal
from trellis.environment.exceptions import format_template_stack

from .helpers import memory_engine


@pytest.fixture
def no_colors(monkeypatch):
    monkeypatch.setattr(terminal, "_USE_COLORS", False)


class TestErrorCodes:
    @pytest.mark.parametrize(
        ("code", "category"),
        [
            (ErrorCode.TEMPLATE_NOT_FOUND, "template"),
            (ErrorCode.UNDEFINED_VARIABLE, "expression"),
            (ErrorCode.ORPHAN_BRANCH, "directive"),
            (ErrorCode.IMPORT_DEPTH, "runtime"),
        ],
    )
    def test_category(self, code, category):
        assert code.category == category

    def test_hierarchy(self):
        for cls in (TemplateNotFoundError, UndefinedError, MalformedDirectiveError, TemplateRuntimeError):
            assert issubclass(cls, TemplateError)
        assert issubclass(TemplateNotFoundError, FileNotFoundError)


class TestMessages:
    def test_not_found(self, no_colors):
        error = TemplateNotFoundError("/views/x.html")
        assert str(error) == "File '/views/x.html' not found"
        assert error.format_compact() == "T-TPL-001: File '/views/x.html' not found"

    def test_dict_loader_suggests_close_match(self):
        engine, _ = memory_engine({"index.html": '<import src="navbar"></import>', "nav-bar.html": ""})
        with pytest.raises(TemplateNotFoundError, match="Did you mean '/views/nav-bar.html'"):
            engine.render("index.html")

    def test_undefined_suggestion(self, no_colors):
        error = UndefinedError("usr", available_names=frozenset({"user", "len"}), template_name="index.html")
        assert str(error).startswith("Undefined variable 'usr' in index.html. Did you mean 'user'?")

    def test_undefined_without_match(self, no_colors):
        error = UndefinedError("zzz", available_names=frozenset({"user"}))
        assert "Did you mean" not in str(error)

    def test_syntax_error_caret(self, no_colors):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            ExpressionEvaluator().evaluate("a b", {})
        lines = str(exc_info.value).splitlines()
        assert lines[1] == "   | a b"
        assert lines[2].endswith("^")

    def test_malformed_directive(self, no_colors):
        error = MalformedDirectiveError(
            "needs a 'times' attribute", tag="repeat", code=ErrorCode.INVALID_REPEAT, template_name="index.html"
        )
        assert str(error) == "Malformed <repeat> directive in index.html: needs a 'times' attribute"
        assert error.format_compact().startswith("T-DIR-002: ")

    def test_runtime_error_stack(self, no_colors):
        error = TemplateRuntimeError(
            "Maximum import depth exceeded",
            template_name="b.html",
            template_stack=["index.html", "a.html"],
            suggestion="Check for circular imports",
        )
        message = str(error)
        assert "Location: b.html" in message
        assert "• a.html" in message
        assert "Suggestion: Check for circular imports" in message

    def test_empty_stack(self):
        assert format_template_stack([]) == ""


class TestTerminal:
    def test_colorize_disabled(self, no_colors):
        assert terminal.colorize("x", "cyan") == "x"

    def test_colorize_enabled(self, monkeypatch):
        monkeypatch.setattr(terminal, "_USE_COLORS", True)
        result = terminal.location("index.html")
        assert result == "\033[36mindex.html\033[0m"

    def test_error_header(self, no_colors):
        assert terminal.format_error_header("T-EXP-002", "msg") == "T-EXP-002: msg"
        assert terminal.format_error_header(None, "msg") == "msg"
