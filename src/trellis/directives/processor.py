"""Directive processing: the tree rewrite at the heart of a render.

``process_template()`` runs seven stages over one parsed document, always in
this order, each mutating the tree in place before the next one looks at it:

    1. ``<if>/<elif>/<else>``   keep the first truthy branch, drop the rest
    2. ``<repeat>``             expand the body once per index
    3. ``@{...}`` / ``#{...}``  substitute evaluated injections in the markup
    4. ``<import>``             inline templates, scripts and styles
    5. ``<script>``             rewrite ``src`` and inline module imports
    6. ``<style>`` / ``<link rel="stylesheet">``
    7. ``<img src>`` / other ``<link href>``

Because stages run in order, later stages only see what earlier ones kept:
an injection inside a dropped branch is never evaluated.

Deferral:
An ``<if>`` inside a ``<repeat>`` is skipped by stage 1. The repeat body is
re-parsed and run through the whole pipeline once per iteration, so the
condition is evaluated against that iteration's index. The mirror rule
applies to a ``<repeat>`` left inside an unresolved ``<if>``.

Scope:
One mapping is shared by the whole render, nested imports and iterations
included. ``<repeat index="i">`` writes ``i`` into it on every iteration and
leaves the last value there afterwards.

Injections:
Repeat iterations run their own injection pass before being spliced into the
parent, and the parent's pass scans the spliced markup again. Substituted
values are therefore ``guard()``-ed so they can never form a new ``@{``/``#{``
opener; the engine strips the guard from the final output.

"""

from __future__ import annotations

import html
import logging
import os
import posixpath
from collections.abc import Callable, MutableMapping
from typing import Any

from trellis.assets.paths import PathResolver, is_external
from trellis.assets.resolvers import ResourceResolver, ScriptResolver, StyleResolver
from trellis.directives.injection import Injection, InjectionKind, guard, substitute
from trellis.environment.exceptions import ErrorCode, MalformedDirectiveError
from trellis.expressions.evaluator import ExpressionEvaluator
from trellis.markup import (
    Document,
    Tag,
    has_ancestor,
    inner_html,
    is_attached,
    next_element_sibling,
    parse,
    replace_with_nodes,
    serialize,
    set_inner_html,
    set_raw_text,
    significant_children,
)
from trellis.render_context import import_context
from trellis.utils.constants import (
    BRANCH_TAGS,
    DEFAULT_TEMPLATE_EXTENSION,
    ELSE_TAG,
    IF_TAG,
    IMPORT_TAG,
    JAVASCRIPT_TYPES,
    REPEAT_TAG,
    SCRIPT_EXTENSIONS,
    STYLE_EXTENSIONS,
    TEMPLATE_EXTENSIONS,
)

logger = logging.getLogger(__name__)

Scope = MutableMapping[str, Any]


class DirectiveProcessor:
    """Rewrite a parsed document according to its directives.

    Args:
        paths: Canonicalizes ``<import src>`` targets
        scripts: Resolves ``<script>`` references and script imports
        styles: Resolves stylesheets and style imports
        resources: Resolves images and other linked files
        evaluator: Evaluates conditions, bounds and injections
        load_template: Returns the source of a template by absolute path
    """

    __slots__ = ("evaluator", "load_template", "paths", "resources", "scripts", "styles")

    def __init__(
        self,
        paths: PathResolver,
        scripts: ScriptResolver,
        styles: StyleResolver,
        resources: ResourceResolver,
        evaluator: ExpressionEvaluator,
        load_template: Callable[[str], str],
    ):
        self.paths = paths
        self.scripts = scripts
        self.styles = styles
        self.resources = resources
        self.evaluator = evaluator
        self.load_template = load_template

    def process_template(self, path: str, document: Document, scope: Scope) -> None:
        """Resolve every directive in ``document``.

        Args:
            path: Absolute path of the file the document came from; relative
                references are resolved against its directory
            document: Parsed tree, mutated in place
            scope: Variables for expressions, shared with nested imports
        """
        self.process_conditionals(path, document, scope)
        self.process_repeats(path, document, scope)
        self.process_injections(path, document, scope)
        self.process_imports(path, document, scope)
        self.process_scripts(path, document)
        self.process_styles(path, document)
        self.process_resources(path, document)

    # ------------------------------------------------------------------
    # Control flow
    # ------------------------------------------------------------------

    def process_conditionals(self, path: str, document: Document, scope: Scope) -> None:
        """Collapse each ``if``/``elif``*/``else``? chain to at most one branch.

        Raises:
            MalformedDirectiveError: For an ``elif``/``else`` with no chain to join
        """
        for element in document.find_all(IF_TAG):
            if not is_attached(element, document) or has_ancestor(element, REPEAT_TAG):
                continue

            chain = [element]
            sibling = next_element_sibling(element)
            while sibling is not None and sibling.name in BRANCH_TAGS:
                chain.append(sibling)
                if sibling.name == ELSE_TAG:
                    break
                sibling = next_element_sibling(sibling)

            matched = False
            for branch in chain:
                if matched:
                    branch.extract()
                elif branch.name == ELSE_TAG or self._condition(path, branch, scope):
                    branch.unwrap()
                    matched = True
                else:
                    branch.extract()

        for orphan in document.find_all(list(BRANCH_TAGS)):
            if has_ancestor(orphan, REPEAT_TAG):
                continue
            raise MalformedDirectiveError(
                f"<{orphan.name}> must directly follow an <if> or <elif>",
                tag=orphan.name,
                code=ErrorCode.ORPHAN_BRANCH,
                template_name=path,
            )

    def _condition(self, path: str, branch: Tag, scope: Scope) -> bool:
        condition = branch.get("condition")
        if condition is None:
            raise MalformedDirectiveError(
                "missing 'condition' attribute",
                tag=branch.name,
                code=ErrorCode.MISSING_CONDITION,
                template_name=path,
            )
        return bool(self.evaluator.evaluate(condition, scope))

    def process_repeats(self, path: str, document: Document, scope: Scope) -> None:
        """Expand each ``repeat`` into one processed copy of its body per index."""
        for element in document.find_all(REPEAT_TAG):
            if not is_attached(element, document) or has_ancestor(element, IF_TAG):
                continue

            indices = self._iteration_range(path, element, scope)
            body = inner_html(element)
            index_name = element.get("index")

            nodes = []
            for index in indices:
                if index_name:
                    scope[index_name] = index
                fragment = parse(body)
                self.process_template(path, fragment, scope)
                nodes.extend(fragment.contents)

            logger.debug("Expanded <repeat> in %s into %d iterations", path, len(indices))
            replace_with_nodes(element, nodes)

    def _iteration_range(self, path: str, element: Tag, scope: Scope) -> range:
        """Indices for a ``repeat``: ``times`` gives 0..times-1, ``from``/``to`` is inclusive."""
        times = element.get("times")
        if times is not None:
            return range(int(self.evaluator.evaluate(times, scope) or 0))

        start = element.get("from")
        stop = element.get("to")
        if start is None or stop is None:
            raise MalformedDirectiveError(
                "needs a 'times' attribute or both 'from' and 'to'",
                tag=REPEAT_TAG,
                code=ErrorCode.INVALID_REPEAT,
                template_name=path,
            )
        first = int(self.evaluator.evaluate(start, scope))
        last = int(self.evaluator.evaluate(stop, scope))
        return range(first, last + 1)

    # ------------------------------------------------------------------
    # Injections
    # ------------------------------------------------------------------

    def process_injections(self, path: str, document: Document, scope: Scope) -> None:
        """Replace ``@{...}`` and ``#{...}`` spans in the serialized markup."""

        def render(injection: Injection) -> str:
            # Scanned from serialized markup, so `<` arrives as `&lt;`
            code = html.unescape(injection.code)
            if injection.kind is InjectionKind.EXPRESSION:
                value = self.evaluator.evaluate(code, scope)
            else:
                value = self.evaluator.execute(code, scope)
            return guard(_output_text(value))

        source = serialize(document)
        result = substitute(source, render)
        if result is not source:
            set_inner_html(document, result)

    # ------------------------------------------------------------------
    # Imports
    # ------------------------------------------------------------------

    def process_imports(self, path: str, document: Document, scope: Scope) -> None:
        """Replace each ``import`` with the processed content it points at.

        When the imported fragment has a single root element, the import
        tag's attributes (except ``src``) are copied onto it.
        """
        base_dir = os.path.dirname(path)
        for element in document.find_all(IMPORT_TAG):
            if not is_attached(element, document):
                continue

            src = element.get("src")
            if not src or is_external(src):
                raise MalformedDirectiveError(
                    f"'src' must name a local file, got {src!r}",
                    tag=IMPORT_TAG,
                    code=ErrorCode.INVALID_IMPORT,
                    template_name=path,
                )
            if not posixpath.splitext(posixpath.basename(src))[1]:
                src += DEFAULT_TEMPLATE_EXTENSION

            target = self.paths.resolve(base_dir, src)
            fragment = self._load_import(path, base_dir, src, target, scope)

            roots = significant_children(fragment)
            if len(roots) == 1 and isinstance(roots[0], Tag):
                for name, value in element.attrs.items():
                    if name != "src":
                        roots[0][name] = value

            logger.debug("Imported %s into %s", target, path)
            replace_with_nodes(element, fragment.contents)

    def _load_import(
        self, path: str, base_dir: str, src: str, target: str, scope: Scope
    ) -> Document:
        extension = os.path.splitext(target)[1].lower()

        if extension in TEMPLATE_EXTENSIONS:
            fragment = parse(self.load_template(target))
            with import_context(target):
                self.process_template(target, fragment, scope)
            return fragment

        if extension in SCRIPT_EXTENSIONS:
            record = self.scripts.resolve(base_dir, src)
            return parse(f"<script>{record.content}</script>")

        if extension in STYLE_EXTENSIONS:
            record = self.styles.resolve(base_dir, src)
            return parse(f"<style>{record.content}</style>")

        raise MalformedDirectiveError(
            f"cannot import '{src}': unsupported file type '{extension}'",
            tag=IMPORT_TAG,
            code=ErrorCode.INVALID_IMPORT,
            template_name=path,
        )

    # ------------------------------------------------------------------
    # Asset references
    # ------------------------------------------------------------------

    def process_scripts(self, path: str, document: Document) -> None:
        base_dir = os.path.dirname(path)
        for element in document.select("script[src]"):
            src = element["src"]
            if _is_local(src):
                element["src"] = self.scripts.url_for(base_dir, src)

        for element in document.select("script:not([src])"):
            if element.get("type", "").strip().lower() not in JAVASCRIPT_TYPES:
                continue
            content = inner_html(element)
            if not content.strip():
                continue
            record = self.scripts.resolve(base_dir, content=content)
            if record.content != content:
                set_raw_text(element, record.content)

    def process_styles(self, path: str, document: Document) -> None:
        base_dir = os.path.dirname(path)
        for element in document.select("style"):
            content = inner_html(element)
            if not content.strip():
                continue
            record = self.styles.resolve(base_dir, content=content)
            if record.content != content:
                set_raw_text(element, record.content)

        for element in document.select('link[href][rel="stylesheet"]'):
            href = element["href"]
            if _is_local(href):
                element["href"] = self.styles.url_for(base_dir, href)

    def process_resources(self, path: str, document: Document) -> None:
        base_dir = os.path.dirname(path)
        for element in document.select("img[src]"):
            src = element["src"]
            if _is_local(src):
                element["src"] = self.resources.url_for(base_dir, src)

        for element in document.select('link[href]:not([rel="stylesheet"])'):
            href = element["href"]
            if _is_local(href):
                element["href"] = self.resources.url_for(base_dir, href)


def _is_local(reference: str) -> bool:
    """References to resolve and record: anything non-empty that is not external.

    Root-relative references are included; they rewrite to themselves but
    still register the file for serving.
    """
    return bool(reference) and not is_external(reference)


def _output_text(value: Any) -> str:
    """Text substituted for an injection result.

    None, False and empty strings or containers produce nothing; numbers
    always print, so an index of 0 renders as "0".
    """
    if value is None or value is False:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return str(value) if value else ""
