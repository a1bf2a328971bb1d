"""Script, style and resource resolution.

Each resolver turns a reference found in a template (or inside another
asset) into a cached ``AssetRecord`` whose ``rel`` path is what ends up in
the rendered markup.

Content Rewriting:
Scripts and styles are read once and their own cross-references are
rewritten before the record is cached:

    ```
    // a.js                              // a.js as served
    import { b } from './lib/b.js';  →   import { b } from '/js/lib/b.js';
    import React from 'react';           import React from 'react';
    ```

    ```
    /* site.css */                        /* site.css as served */
    @import "base.css";               →   @import "/css/base.css";
    body { background: url(bg.png) }      body { background: url(/img/bg.png) }
    ```

Relative specifiers recurse through the same resolver (``.css`` targets of
``url()`` through the style resolver, everything else through the resource
resolver); bare module names and external URLs are left as written.

"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from trellis.assets.cache import AssetCache, AssetKind, AssetRecord, inline_key
from trellis.assets.paths import PathResolver, is_external, is_root_relative, split_suffix
from trellis.utils.constants import STYLE_EXTENSIONS

if TYPE_CHECKING:
    from trellis.environment.loaders import DictLoader, FileSystemLoader

logger = logging.getLogger(__name__)

# import x from './x.js' / import './x.js' / export { y } from './y.js'
_STATIC_IMPORT = re.compile(
    r"""(?P<prefix>\b(?:import|export)\s+(?:[\w$*{}\s,]+?\s+from\s+)?)"""
    r"""(?P<quote>['"])(?P<target>[^'"\n]+)(?P=quote)"""
)
# import('./x.js')
_DYNAMIC_IMPORT = re.compile(
    r"""(?P<prefix>\bimport\(\s*)(?P<quote>['"])(?P<target>[^'"\n]+)(?P=quote)"""
)
# url(x.png) / url('x.png') / url( "x.css" )
_CSS_URL = re.compile(
    r"""(?P<prefix>url\(\s*)(?P<quote>['"]?)(?P<target>[^'")\s]+)(?P=quote)""",
    re.IGNORECASE,
)
# @import "x.css" / @import 'x.css' screen
_CSS_IMPORT = re.compile(
    r"""(?P<prefix>@import\s+)(?P<quote>['"])(?P<target>[^'"\s]+)(?P=quote)""",
    re.IGNORECASE,
)


def _is_relative_specifier(target: str) -> bool:
    """Module specifiers that name a file rather than a package."""
    if is_external(target):
        return False
    return target.startswith(("./", "../")) or is_root_relative(target)


class AssetResolver(ABC):
    """Base resolver: path canonicalization plus one cache kind.

    Attributes:
        kind: The AssetCache bucket this resolver reads and writes
    """

    kind: AssetKind = AssetKind.RESOURCE

    __slots__ = ("cache", "loader", "paths")

    def __init__(
        self,
        paths: PathResolver,
        cache: AssetCache,
        loader: FileSystemLoader | DictLoader,
    ):
        self.paths = paths
        self.cache = cache
        self.loader = loader

    @abstractmethod
    def resolve(self, base_dir: str, target: str) -> AssetRecord: ...

    def url_for(self, base_dir: str, target: str) -> str:
        """Rewritten form of ``target``; external references come back as-is."""
        if is_external(target):
            return target
        clean, suffix = split_suffix(target)
        return self.resolve(base_dir, clean).rel + suffix


class ResourceResolver(AssetResolver):
    """Resolve images, fonts and other files that are served but never read."""

    kind = AssetKind.RESOURCE

    __slots__ = ()

    def resolve(self, base_dir: str, target: str) -> AssetRecord:
        path = self.paths.resolve(base_dir, split_suffix(target)[0])
        return self.cache.get_or_create(self.kind, path, self.paths.relative(path))


class ContentResolver(AssetResolver):
    """Resolver for assets whose content is read and rewritten."""

    __slots__ = ()

    def resolve(
        self,
        base_dir: str,
        target: str | None = None,
        content: str | None = None,
    ) -> AssetRecord:
        """Resolve a file reference or a block of inline content.

        Args:
            base_dir: Directory relative references are resolved against
            target: Local file reference (relative or root-relative)
            content: Inline source when there is no file to reference

        Raises:
            TemplateNotFoundError: If the referenced file does not exist
            ValueError: If neither ``target`` nor ``content`` is given
        """
        if target:
            path = self.paths.resolve(base_dir, split_suffix(target)[0])

            def populate(record: AssetRecord) -> None:
                source = self.loader.get_source(path)
                logger.debug("Rewriting %s %s", self.kind.value, record.rel)
                record.content = self.rewrite(os.path.dirname(path), source)

            return self.cache.get_or_create(
                self.kind, path, self.paths.relative(path), populate
            )

        if content is not None:

            def populate_inline(record: AssetRecord) -> None:
                record.content = self.rewrite(base_dir, content)

            return self.cache.get_or_create(
                self.kind, inline_key(base_dir, content), None, populate_inline
            )

        raise ValueError(f"{type(self).__name__}.resolve() needs a target or content")

    @abstractmethod
    def rewrite(self, base_dir: str, content: str) -> str:
        """Return ``content`` with its local references rewritten."""


class ScriptResolver(ContentResolver):
    """Resolve JavaScript files and rewrite their module imports."""

    kind = AssetKind.SCRIPT

    __slots__ = ()

    def rewrite(self, base_dir: str, content: str) -> str:
        def replace(match: re.Match[str]) -> str:
            target = match["target"]
            if not _is_relative_specifier(target):
                return match.group(0)
            url = self.url_for(base_dir, target)
            return f"{match['prefix']}{match['quote']}{url}{match['quote']}"

        content = _STATIC_IMPORT.sub(replace, content)
        return _DYNAMIC_IMPORT.sub(replace, content)


class StyleResolver(ContentResolver):
    """Resolve stylesheets and rewrite ``url()`` and ``@import`` references.

    ``url()`` targets ending in ``.css`` recurse into this resolver; every
    other ``url()`` target is handed to ``resources``.
    """

    kind = AssetKind.STYLE

    __slots__ = ("resources",)

    def __init__(
        self,
        paths: PathResolver,
        cache: AssetCache,
        loader: FileSystemLoader | DictLoader,
        resources: ResourceResolver,
    ):
        super().__init__(paths, cache, loader)
        self.resources = resources

    def rewrite(self, base_dir: str, content: str) -> str:
        def replace_url(match: re.Match[str]) -> str:
            target = match["target"]
            if is_external(target):
                return match.group(0)
            clean = split_suffix(target)[0]
            if os.path.splitext(clean)[1].lower() in STYLE_EXTENSIONS:
                url = self.url_for(base_dir, target)
            else:
                url = self.resources.url_for(base_dir, target)
            return f"{match['prefix']}{match['quote']}{url}{match['quote']}"

        def replace_import(match: re.Match[str]) -> str:
            target = match["target"]
            if is_external(target):
                return match.group(0)
            url = self.url_for(base_dir, target)
            return f"{match['prefix']}{match['quote']}{url}{match['quote']}"

        content = _CSS_URL.sub(replace_url, content)
        return _CSS_IMPORT.sub(replace_import, content)
