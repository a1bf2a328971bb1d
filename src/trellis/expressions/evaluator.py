"""Restricted expression evaluation against a scope mapping.

Directive conditions, ``repeat`` bounds and ``@{...}``/``#{...}`` injections
are written in Python expression syntax. Source text is parsed with the
standard ``ast`` module and interpreted node by node; nothing is ever handed
to ``eval()``/``exec()``. Only the node types listed in the dispatch tables
below are understood, so anything else (lambdas, comprehensions, imports,
walrus, ``await``) fails with ``UnsupportedExpressionError``.

Name Resolution:
    1. The scope mapping (mutations made by ``repeat`` are visible)
    2. ``SAFE_BUILTINS`` (``len``, ``range``, ``true``/``false``/``null``...)
    3. Otherwise ``UndefinedError``

Member access (``user.admin``) reads mapping keys first and attributes
second; a missing member evaluates to ``None`` the way an undefined property
does in markup-side scripting, so ``<if condition="user.admin">`` works when
the key is absent. Attributes starting with ``_`` and the string
``format``/``format_map`` methods are refused.

Two entry points:
    - ``evaluate(source, scope)``: a single expression (``#{}``, conditions)
    - ``execute(source, scope)``: a short statement block (``@{}``); the
      result is the ``return`` value, else the last expression statement

Example:
    >>> evaluator = ExpressionEvaluator()
    >>> evaluator.evaluate("user.name.upper()", {"user": {"name": "ada"}})
    'ADA'
    >>> scope = {}
    >>> evaluator.execute("total = 2 * 21\\ntotal", scope)
    42
    >>> scope["total"]
    42

"""

from __future__ import annotations

import ast
import operator
import textwrap
from collections.abc import Callable, Mapping, MutableMapping
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from trellis.environment.exceptions import (
    ExpressionSyntaxError,
    UndefinedError,
    UnsupportedExpressionError,
)
from trellis.render_context import get_render_context

SAFE_BUILTINS: Mapping[str, Any] = MappingProxyType(
    {
        "abs": abs,
        "all": all,
        "any": any,
        "bool": bool,
        "dict": dict,
        "enumerate": enumerate,
        "float": float,
        "int": int,
        "len": len,
        "list": list,
        "max": max,
        "min": min,
        "range": range,
        "round": round,
        "sorted": sorted,
        "str": str,
        "sum": sum,
        "zip": zip,
        "True": True,
        "False": False,
        "None": None,
        "true": True,
        "false": False,
        "null": None,
    }
)

UNSAFE_ATTRIBUTES: frozenset[str] = frozenset({"format", "format_map", "mro"})

_BINARY_OPS: dict[type[ast.operator], Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
    ast.BitAnd: operator.and_,
    ast.BitOr: operator.or_,
    ast.BitXor: operator.xor,
    ast.LShift: operator.lshift,
    ast.RShift: operator.rshift,
}

_UNARY_OPS: dict[type[ast.unaryop], Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
    ast.Invert: operator.invert,
}

_COMPARE_OPS: dict[type[ast.cmpop], Callable[[Any, Any], bool]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
    ast.In: lambda left, right: left in right,
    ast.NotIn: lambda left, right: left not in right,
}

# Sentinel for "block finished without return"
_NO_RETURN = object()


def _normalize(source: str) -> str:
    return textwrap.dedent(source).strip()


@lru_cache(maxsize=1024)
def _parse(source: str, mode: str) -> ast.AST:
    """Parse and memoize expression source.

    Raises:
        ExpressionSyntaxError: If the source does not parse
    """
    try:
        return ast.parse(source, mode=mode)
    except SyntaxError as e:
        ctx = get_render_context()
        raise ExpressionSyntaxError(
            f"Invalid expression: {e.msg}",
            expression=source,
            column=(e.offset - 1) if e.offset else None,
            template_name=ctx.template_name if ctx else None,
            template_stack=ctx.template_stack if ctx else None,
        ) from None


class ExpressionEvaluator:
    """Evaluate expressions and statement blocks against a scope.

    Args:
        builtins: Extra names available to every expression, merged over
            ``SAFE_BUILTINS`` (e.g. helper functions for every template)

    Thread-Safety:
        Stateless apart from the shared parse cache; one instance can serve
        every render.
    """

    __slots__ = ("_builtins",)

    def __init__(self, builtins: Mapping[str, Any] | None = None):
        self._builtins: dict[str, Any] = {**SAFE_BUILTINS, **(builtins or {})}

    def evaluate(self, source: str, scope: MutableMapping[str, Any]) -> Any:
        """Evaluate a single expression. Empty source evaluates to None."""
        source = _normalize(source)
        if not source:
            return None
        tree = _parse(source, "eval")
        return _Interpreter(source, scope, self._builtins).eval(tree.body)

    def execute(self, source: str, scope: MutableMapping[str, Any]) -> Any:
        """Run a statement block and return its result.

        Assignments write into ``scope``. The result is the value of an
        explicit ``return``, else of the final expression statement, else None.
        """
        source = _normalize(source)
        if not source:
            return None
        tree = _parse(source, "exec")
        interpreter = _Interpreter(source, scope, self._builtins)
        result = interpreter.run(tree.body)
        if result is _NO_RETURN:
            return interpreter.last_value
        return result


class _Interpreter:
    """Walk one parsed expression or block. Created per evaluation."""

    __slots__ = ("_builtins", "last_value", "scope", "source")

    def __init__(self, source: str, scope: MutableMapping[str, Any], builtins: dict[str, Any]):
        self.source = source
        self.scope = scope
        self._builtins = builtins
        self.last_value: Any = None

    # ------------------------------------------------------------------
    # Errors
    # ------------------------------------------------------------------

    def _context(self) -> dict[str, Any]:
        ctx = get_render_context()
        return {
            "expression": self.source,
            "template_name": ctx.template_name if ctx else None,
            "template_stack": ctx.template_stack if ctx else None,
        }

    def _unsupported(self, node: ast.AST, what: str | None = None) -> UnsupportedExpressionError:
        col = getattr(node, "col_offset", None)
        return UnsupportedExpressionError(
            what or f"{type(node).__name__} is not supported in template expressions",
            column=col,
            **self._context(),
        )

    def _check_attribute(self, node: ast.AST, attr: str) -> None:
        if attr.startswith("_") or attr in UNSAFE_ATTRIBUTES:
            raise self._unsupported(node, f"Access to attribute '{attr}' is not allowed")

    # ------------------------------------------------------------------
    # Statements
    # ------------------------------------------------------------------

    def run(self, body: list[ast.stmt]) -> Any:
        """Execute statements; return the ``return`` value or ``_NO_RETURN``."""
        for stmt in body:
            if isinstance(stmt, ast.Return):
                return self.eval(stmt.value) if stmt.value is not None else None
            if isinstance(stmt, ast.Expr):
                self.last_value = self.eval(stmt.value)
            elif isinstance(stmt, ast.Assign):
                value = self.eval(stmt.value)
                for target in stmt.targets:
                    self._assign(target, value)
            elif isinstance(stmt, ast.AugAssign):
                op = _BINARY_OPS.get(type(stmt.op))
                if op is None:
                    raise self._unsupported(stmt.op)
                self._assign(stmt.target, op(self.eval(_as_load(stmt.target)), self.eval(stmt.value)))
            elif isinstance(stmt, ast.If):
                branch = stmt.body if self.eval(stmt.test) else stmt.orelse
                result = self.run(branch)
                if result is not _NO_RETURN:
                    return result
            elif isinstance(stmt, ast.Pass):
                continue
            else:
                raise self._unsupported(stmt)
        return _NO_RETURN

    def _assign(self, target: ast.expr, value: Any) -> None:
        if isinstance(target, ast.Name):
            self.scope[target.id] = value
        elif isinstance(target, ast.Subscript):
            self.eval(target.value)[self.eval(target.slice)] = value
        elif isinstance(target, ast.Attribute):
            self._check_attribute(target, target.attr)
            obj = self.eval(target.value)
            if not isinstance(obj, MutableMapping):
                raise self._unsupported(target, "Only mapping members can be assigned")
            obj[target.attr] = value
        elif isinstance(target, (ast.Tuple, ast.List)):
            values = list(value)
            if len(values) != len(target.elts):
                raise ValueError(
                    f"cannot unpack {len(values)} values into {len(target.elts)} names"
                )
            for elt, item in zip(target.elts, values):
                self._assign(elt, item)
        else:
            raise self._unsupported(target)

    # ------------------------------------------------------------------
    # Expressions
    # ------------------------------------------------------------------

    def eval(self, node: ast.expr) -> Any:
        handler = _HANDLERS.get(type(node))
        if handler is None:
            raise self._unsupported(node)
        return handler(self, node)

    def _constant(self, node: ast.Constant) -> Any:
        return node.value

    def _name(self, node: ast.Name) -> Any:
        name = node.id
        if name in self.scope:
            return self.scope[name]
        if name in self._builtins:
            return self._builtins[name]
        raise UndefinedError(
            name,
            available_names=frozenset(self.scope) | frozenset(self._builtins),
            **self._context(),
        )

    def _attribute(self, node: ast.Attribute) -> Any:
        self._check_attribute(node, node.attr)
        obj = self.eval(node.value)
        if isinstance(obj, Mapping) and node.attr in obj:
            return obj[node.attr]
        return getattr(obj, node.attr, None)

    def _subscript(self, node: ast.Subscript) -> Any:
        return self.eval(node.value)[self.eval(node.slice)]

    def _slice(self, node: ast.Slice) -> slice:
        lower = self.eval(node.lower) if node.lower is not None else None
        upper = self.eval(node.upper) if node.upper is not None else None
        step = self.eval(node.step) if node.step is not None else None
        return slice(lower, upper, step)

    def _binop(self, node: ast.BinOp) -> Any:
        op = _BINARY_OPS.get(type(node.op))
        if op is None:
            raise self._unsupported(node.op)
        return op(self.eval(node.left), self.eval(node.right))

    def _unaryop(self, node: ast.UnaryOp) -> Any:
        return _UNARY_OPS[type(node.op)](self.eval(node.operand))

    def _boolop(self, node: ast.BoolOp) -> Any:
        is_and = isinstance(node.op, ast.And)
        value: Any = None
        for operand in node.values:
            value = self.eval(operand)
            if bool(value) is not is_and:
                return value
        return value

    def _compare(self, node: ast.Compare) -> bool:
        left = self.eval(node.left)
        for op, comparator in zip(node.ops, node.comparators):
            right = self.eval(comparator)
            if not _COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True

    def _ifexp(self, node: ast.IfExp) -> Any:
        return self.eval(node.body) if self.eval(node.test) else self.eval(node.orelse)

    def _call(self, node: ast.Call) -> Any:
        func = self.eval(node.func)
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise self._unsupported(arg)
            args.append(self.eval(arg))
        kwargs = {}
        for keyword in node.keywords:
            if keyword.arg is None:
                raise self._unsupported(keyword, "Keyword unpacking is not supported")
            kwargs[keyword.arg] = self.eval(keyword.value)
        return func(*args, **kwargs)

    def _list(self, node: ast.List) -> list[Any]:
        return [self.eval(elt) for elt in node.elts]

    def _tuple(self, node: ast.Tuple) -> tuple[Any, ...]:
        return tuple(self.eval(elt) for elt in node.elts)

    def _set(self, node: ast.Set) -> set[Any]:
        return {self.eval(elt) for elt in node.elts}

    def _dict(self, node: ast.Dict) -> dict[Any, Any]:
        result = {}
        for key, value in zip(node.keys, node.values):
            if key is None:
                raise self._unsupported(node, "Dict unpacking is not supported")
            result[self.eval(key)] = self.eval(value)
        return result

    def _joined_str(self, node: ast.JoinedStr) -> str:
        return "".join(str(self.eval(value)) for value in node.values)

    def _formatted_value(self, node: ast.FormattedValue) -> str:
        value = self.eval(node.value)
        if node.conversion == ord("r"):
            value = repr(value)
        elif node.conversion == ord("a"):
            value = ascii(value)
        elif node.conversion == ord("s"):
            value = str(value)
        spec = self.eval(node.format_spec) if node.format_spec is not None else ""
        return format(value, spec)


def _as_load(target: ast.expr) -> ast.expr:
    """Read form of an assignment target, for augmented assignment."""
    if isinstance(target, ast.Name):
        return ast.Name(id=target.id, ctx=ast.Load())
    if isinstance(target, ast.Subscript):
        return ast.Subscript(value=target.value, slice=target.slice, ctx=ast.Load())
    if isinstance(target, ast.Attribute):
        return ast.Attribute(value=target.value, attr=target.attr, ctx=ast.Load())
    return target


_HANDLERS: dict[type[ast.AST], Callable[[_Interpreter, Any], Any]] = {
    ast.Constant: _Interpreter._constant,
    ast.Name: _Interpreter._name,
    ast.Attribute: _Interpreter._attribute,
    ast.Subscript: _Interpreter._subscript,
    ast.Slice: _Interpreter._slice,
    ast.BinOp: _Interpreter._binop,
    ast.UnaryOp: _Interpreter._unaryop,
    ast.BoolOp: _Interpreter._boolop,
    ast.Compare: _Interpreter._compare,
    ast.IfExp: _Interpreter._ifexp,
    ast.Call: _Interpreter._call,
    ast.List: _Interpreter._list,
    ast.Tuple: _Interpreter._tuple,
    ast.Set: _Interpreter._set,
    ast.Dict: _Interpreter._dict,
    ast.JoinedStr: _Interpreter._joined_str,
    ast.FormattedValue: _Interpreter._formatted_value,
}
