"""Restricted expression evaluation.

Covers name resolution, member access on mappings and objects, the
statement subset used by ``@{}``, and everything the evaluator refuses.
"""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from trellis import (
    ExpressionEvaluator,
    ExpressionSyntaxError,
    UndefinedError,
    UnsupportedExpressionError,
)

from .strategies import safe_identifier, safe_integer

_evaluator = ExpressionEvaluator()


def evaluate(source: str, **scope):
    return _evaluator.evaluate(source, scope)


class TestNames:
    def test_scope_lookup(self):
        assert evaluate("x", x=3) == 3

    def test_scope_shadows_builtins(self):
        assert evaluate("len", len="mine") == "mine"

    def test_builtins(self):
        assert evaluate("len(items)", items=[1, 2]) == 2
        assert evaluate("max(range(4))") == 3

    def test_literal_aliases(self):
        assert evaluate("true") is True
        assert evaluate("false") is False
        assert evaluate("null") is None

    def test_undefined(self):
        with pytest.raises(UndefinedError) as exc_info:
            evaluate("usr", user={})
        assert exc_info.value.name == "usr"
        assert "user" in str(exc_info.value)

    def test_empty_source(self):
        assert evaluate("   ") is None


class TestMemberAccess:
    def test_mapping_key(self):
        assert evaluate("user.admin", user={"admin": True}) is True

    def test_missing_key_is_none(self):
        assert evaluate("user.admin", user={}) is None

    def test_object_attribute_and_method(self):
        assert evaluate("user.name.upper()", user={"name": "ada"}) == "ADA"

    def test_subscript_and_slice(self):
        assert evaluate("items[1]", items=[1, 2, 3]) == 2
        assert evaluate("items[::-1]", items=[1, 2, 3]) == [3, 2, 1]
        assert evaluate("user['name']", user={"name": "ada"}) == "ada"

    def test_nested_braces_call(self):
        assert evaluate("fn({'a': 1})", fn=lambda d: d["a"] + 1) == 2


class TestOperators:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("1 + 2 * 3", 7),
            ("7 // 2", 3),
            ("7 % 4", 3),
            ("2 ** 5", 32),
            ("-x", -4),
            ("not x", False),
            ("1 < x <= 4", True),
            ("1 < x < 4", False),
            ("x in [1, 4]", True),
            ("x not in (1, 2)", True),
            ("x is None", False),
            ("'a' if x else 'b'", "a"),
            ("0 or x", 4),
            ("x and 0", 0),
            ("f'{x:03d}'", "004"),
            ("{'k': x}['k']", 4),
            ("{1, 1, 2}", {1, 2}),
        ],
    )
    def test_operator(self, source, expected):
        assert evaluate(source, x=4) == expected

    def test_short_circuit(self):
        # Right side would raise UndefinedError if evaluated
        assert evaluate("false and missing") is False
        assert evaluate("true or missing") is True

    def test_host_errors_propagate_unchanged(self):
        with pytest.raises(ZeroDivisionError):
            evaluate("1 / 0")


class TestRestrictions:
    @pytest.mark.parametrize(
        "source",
        [
            "(lambda: 1)()",
            "[i for i in range(3)]",
            "{k: 1 for k in 'ab'}",
            "(y := 1)",
            "''.__class__",
            "x._private",
            "'{0.__class__}'.format(1)",
            "f(*args)",
            "f(**kwargs)",
            "{**x}",
        ],
    )
    def test_refused(self, source):
        with pytest.raises(UnsupportedExpressionError):
            evaluate(source, x={}, f=print, args=(), kwargs={})

    def test_refused_statements(self):
        for source in ("import os", "for i in x: pass", "del x", "def f(): pass"):
            with pytest.raises(UnsupportedExpressionError):
                _evaluator.execute(source, {"x": []})

    def test_syntax_error(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            evaluate("1 +")
        assert exc_info.value.expression == "1 +"


class TestExecute:
    def test_assignment_writes_scope(self):
        scope = {}
        assert _evaluator.execute("total = 2 * 21", scope) is None
        assert scope["total"] == 42

    def test_last_expression_value(self):
        assert _evaluator.execute("a = 2\na * 3", {}) == 6

    def test_return(self):
        source = """
            if flag:
                return 'yes'
            return 'no'
        """
        assert _evaluator.execute(source, {"flag": True}) == "yes"
        assert _evaluator.execute(source, {"flag": False}) == "no"

    def test_augmented_and_member_assignment(self):
        scope = {"n": 1, "user": {}, "items": [0, 0]}
        _evaluator.execute("n += 4\nuser.name = 'ada'\nitems[1] = n", scope)
        assert scope == {"n": 5, "user": {"name": "ada"}, "items": [0, 5]}

    def test_tuple_unpacking(self):
        scope = {}
        _evaluator.execute("a, b = 1, 2", scope)
        assert (scope["a"], scope["b"]) == (1, 2)

    def test_object_attribute_assignment_refused(self):
        class Box:
            pass

        with pytest.raises(UnsupportedExpressionError):
            _evaluator.execute("box.value = 1", {"box": Box()})


class TestCustomBuiltins:
    def test_extra_builtins(self):
        evaluator = ExpressionEvaluator(builtins={"shout": str.upper})
        assert evaluator.evaluate("shout('hi')", {}) == "HI"


class TestExpressionProperties:
    """Algebraic properties that must hold for all values."""

    @given(name=safe_identifier, x=safe_integer)
    @settings(max_examples=200)
    def test_additive_identity(self, name: str, x: int) -> None:
        assert _evaluator.evaluate(f"{name} + 0", {name: x}) == x

    @given(a=safe_integer, b=safe_integer)
    @settings(max_examples=200)
    def test_addition_commutativity(self, a: int, b: int) -> None:
        assert evaluate("a + b", a=a, b=b) == evaluate("b + a", a=a, b=b)

    @given(x=st.booleans())
    @settings(max_examples=20)
    def test_boolean_tautology(self, x: bool) -> None:
        assert evaluate("x or not x", x=x) is True

    @given(x=st.integers(min_value=-9999, max_value=9999))
    @settings(max_examples=100)
    def test_int_str_roundtrip(self, x: int) -> None:
        assert evaluate("int(str(x))", x=x) == x
