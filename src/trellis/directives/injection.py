"""Balanced-brace scanning for ``@{...}`` and ``#{...}`` injections.

Injections are found in serialized markup as plain text, not in the tree,
so they work equally in text, attribute values and inline scripts:

    ```html
    <a href="/users/#{user.id}" title="@{ greet(user) }">#{user.name}</a>
    ```

The scanner counts brace depth inside an injection: an inner ``{`` opens a
level and a ``}`` only closes the injection at depth zero, so
``@{ fn({'a': 1}) }`` yields the code `` fn({'a': 1}) ``. An opener with no
matching close is left in the text untouched.

"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

from trellis.utils.constants import INJECTION_GUARD


class InjectionKind(Enum):
    """Delimiter family of an injection."""

    SCRIPT = "@"  # @{ ... } statement block
    EXPRESSION = "#"  # #{ ... } single expression, instant output


_OPENERS = {f"{kind.value}{{": kind for kind in InjectionKind}


@dataclass(frozen=True, slots=True)
class Injection:
    """One delimited injection found in markup.

    Attributes:
        kind: Which delimiter opened it
        code: Source between the delimiters, verbatim
        start: Offset of the opening ``@``/``#``
        end: Offset just past the closing ``}``
    """

    kind: InjectionKind
    code: str
    start: int
    end: int


def scan(source: str) -> Iterator[Injection]:
    """Yield every balanced injection in ``source`` from left to right."""
    i = 0
    length = len(source)
    while i < length - 1:
        kind = _OPENERS.get(source[i : i + 2])
        if kind is None:
            i += 1
            continue

        start = i
        depth = 0
        j = i + 2
        while j < length:
            char = source[j]
            if char == "{":
                depth += 1
            elif char == "}":
                if depth == 0:
                    break
                depth -= 1
            j += 1
        else:
            # Unterminated: nothing after this point can close either
            return

        yield Injection(kind=kind, code=source[start + 2 : j], start=start, end=j + 1)
        i = j + 1


def substitute(source: str, render: Callable[[Injection], str]) -> str:
    """Replace each injection span (delimiters included) with ``render(injection)``."""
    parts: list[str] = []
    position = 0
    for injection in scan(source):
        parts.append(source[position : injection.start])
        parts.append(render(injection))
        position = injection.end
    if position == 0:
        return source
    parts.append(source[position:])
    return "".join(parts)


def guard(value: str) -> str:
    """Make substituted text inert for later scans of the same markup.

    A guard character goes before every ``{`` in ``value`` and after a
    trailing ``@``/``#``, so no opener can be formed from the value alone or
    together with the template text around it.

    Example:
        >>> list(scan(guard("#{secret}") + "{x}"))
        []
    """
    value = value.replace("{", INJECTION_GUARD + "{")
    if value.endswith(tuple(kind.value for kind in InjectionKind)):
        value += INJECTION_GUARD
    return value


def unguard(markup: str) -> str:
    """Remove guard characters from fully rendered markup."""
    return markup.replace(INJECTION_GUARD, "")
