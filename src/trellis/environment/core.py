"""TemplateEngine: loads, processes and serializes templates.

The engine owns every piece of shared state: the template source cache,
the three asset caches and the lock that serializes renders over them.

Architecture:
    ```
    render(file, scope)
    ├── get_template()            raw source, cached by absolute path
    ├── markup.parse()            BeautifulSoup tree
    ├── DirectiveProcessor        if → repeat → injections → import → assets
    │   ├── ScriptResolver ─┐
    │   ├── StyleResolver ──┼──── PathResolver + AssetCache
    │   └── ResourceResolver┘
    └── markup.serialize()        final HTML
    ```

Caching:
With ``cache=True`` (default) template sources and asset records live for
the life of the engine. With ``cache=False`` every render starts by clearing
them, so edits on disk show up on the next request.

Thread-Safety:
Renders mutate the shared caches, so ``render()``, ``clear_cache()`` and the
serving hooks hold one re-entrant lock. Overlapping renders from a threaded
server are serialized rather than interleaved.

"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Mapping, MutableMapping
from typing import Any

from trellis import markup
from trellis.assets.cache import AssetCache
from trellis.assets.paths import PathResolver
from trellis.assets.resolvers import ResourceResolver, ScriptResolver, StyleResolver
from trellis.directives.injection import unguard
from trellis.directives.processor import DirectiveProcessor
from trellis.environment.loaders import DictLoader, FileSystemLoader
from trellis.expressions.evaluator import ExpressionEvaluator
from trellis.render_context import render_context
from trellis.utils.constants import DEFAULT_TEMPLATE_EXTENSION

logger = logging.getLogger(__name__)


class TemplateEngine:
    """Render directive templates from a views directory.

    Args:
        views: Views root; root-relative references and served paths are
            computed against it
        cache: Keep template and asset caches across renders
        minify: Reserved for output whitespace stripping; currently a no-op
        loader: File-system collaborator (default ``FileSystemLoader()``)
        evaluator: Expression collaborator (default ``ExpressionEvaluator()``)
        max_import_depth: Limit on nested ``<import>`` of templates

    Example:
            >>> engine = TemplateEngine("views/")
            >>> engine.render("index.html", {"user": {"admin": False}})
            '<h1>Hi guest</h1>'
            >>> engine.get_public_file("/js/app.js")
            '/srv/app/views/js/app.js'

    """

    __slots__ = (
        "_lock",
        "_templates",
        "assets",
        "cache",
        "evaluator",
        "loader",
        "max_import_depth",
        "minify",
        "paths",
        "processor",
        "resources",
        "scripts",
        "styles",
    )

    def __init__(
        self,
        views: str | os.PathLike[str],
        *,
        cache: bool = True,
        minify: bool = False,
        loader: FileSystemLoader | DictLoader | None = None,
        evaluator: ExpressionEvaluator | None = None,
        max_import_depth: int = 50,
    ):
        self.cache = cache
        self.minify = minify
        self.max_import_depth = max_import_depth
        self.loader = loader if loader is not None else FileSystemLoader()
        self.evaluator = evaluator if evaluator is not None else ExpressionEvaluator()

        self.paths = PathResolver(views)
        self.assets = AssetCache()
        self.resources = ResourceResolver(self.paths, self.assets, self.loader)
        self.scripts = ScriptResolver(self.paths, self.assets, self.loader)
        self.styles = StyleResolver(self.paths, self.assets, self.loader, self.resources)
        self.processor = DirectiveProcessor(
            self.paths,
            self.scripts,
            self.styles,
            self.resources,
            self.evaluator,
            self.get_template,
        )

        self._templates: dict[str, str] = {}
        self._lock = threading.RLock()

    @property
    def views(self) -> str:
        """Absolute views root."""
        return self.paths.views

    def render(
        self,
        file: str | os.PathLike[str],
        scope: MutableMapping[str, Any] | None = None,
        /,
        **variables: Any,
    ) -> str:
        """Render a template to HTML.

        Args:
            file: Template path, absolute or relative to the views root;
                ``.html`` is added when there is no extension
            scope: Variables for expressions. Used as-is, so writes made by
                the template (``repeat`` indices, ``@{ x = 1 }``) are visible
                to the caller afterwards
            **variables: Extra variables, merged over a copy of ``scope``

        Returns:
            Serialized markup with every directive resolved.

        Raises:
            TemplateNotFoundError: If the template or anything it references is missing
            ExpressionError: If an expression fails to parse or evaluate
            MalformedDirectiveError: If a directive is structurally invalid
        """
        if scope is None:
            scope = {}
        if variables:
            scope = {**scope, **variables}

        path = self.template_path(file)
        with self._lock:
            if not self.cache:
                self._clear()

            source = self.get_template(path)
            document = markup.parse(source)
            with render_context(path, max_import_depth=self.max_import_depth):
                self.processor.process_template(path, document, scope)
            return unguard(markup.serialize(document))

    def template_path(self, file: str | os.PathLike[str]) -> str:
        """Absolute path of a template given to ``render()``."""
        file = os.fspath(file)
        if not os.path.splitext(file)[1]:
            file += DEFAULT_TEMPLATE_EXTENSION
        if os.path.isabs(file):
            return os.path.normpath(file)
        return os.path.normpath(os.path.join(self.views, file))

    def get_template(self, path: str) -> str:
        """Raw template source by absolute path, read once while caching is on."""
        source = self._templates.get(path)
        if source is None:
            logger.debug("Template cache miss: %s", path)
            source = self.loader.get_source(path)
            self._templates[path] = source
        return source

    # ------------------------------------------------------------------
    # Serving hooks
    # ------------------------------------------------------------------

    def get_public_file(self, request_path: str) -> str | None:
        """Map a request path to a servable file, or None.

        A path is servable when a render has resolved it as a script, style
        or resource, it lies inside the views root and it exists.

        Example:
            >>> engine.render("index.html")
            >>> engine.get_public_file("/js/app.js")
            '/srv/app/views/js/app.js'
            >>> engine.get_public_file("/secrets.env") is None
            True
        """
        path = self.paths.resolve(self.views, "/" + request_path.lstrip("/"))
        with self._lock:
            if not self.assets.contains(path):
                return None
        if not self.paths.contains(path):
            return None
        if not self.loader.exists(path):
            return None
        return path

    def public_files(self) -> Mapping[str, str]:
        """All servable records as ``{relative path: absolute path}``."""
        with self._lock:
            return {
                record.rel: record.path
                for record in self.assets.records()
                if record.path is not None and self.paths.contains(record.path)
            }

    def clear_cache(self) -> None:
        """Drop all cached template sources and asset records."""
        with self._lock:
            self._clear()

    def _clear(self) -> None:
        logger.debug("Clearing template and asset caches")
        self._templates.clear()
        self.assets.clear()
