"""Reference classification and path canonicalization.

Three kinds of reference appear in templates, scripts and styles:

- **External** (``https://cdn/x.js``, ``data:...``, ``//host/x``, ``#id``):
  never resolved, cached or rewritten.
- **Root-relative** (``/img/x.png``): rebased onto the views root,
  whatever file it was found in.
- **Relative** (``./a.js``, ``../css/site.css``, ``logo.png``): joined onto
  the directory of the referencing file and normalized.

The relative path embedded in rendered markup is always computed from the
canonical absolute path by stripping the views root, which is also how the
serving hook maps a request back to a file.

"""

from __future__ import annotations

import os

from trellis.utils.constants import EXTERNAL_PATTERN, HTTP_PATTERN, URL_SUFFIX_PATTERN


def is_http(target: str) -> bool:
    return bool(HTTP_PATTERN.match(target))


def is_external(target: str) -> bool:
    """True for HTTP(S) and any other reference that is not a local path."""
    return is_http(target) or bool(EXTERNAL_PATTERN.match(target))


def is_root_relative(target: str) -> bool:
    return target.startswith("/") and not target.startswith("//")


def split_suffix(target: str) -> tuple[str, str]:
    """Split ``font.woff2?v=3#x`` into ``("font.woff2", "?v=3#x")``."""
    match = URL_SUFFIX_PATTERN.search(target)
    if match is None:
        return target, ""
    return target[: match.start()], match.group(0)


class PathResolver:
    """Turn references into canonical absolute paths under a views root.

    Example:
            >>> resolver = PathResolver("/srv/views")
            >>> resolver.resolve("/srv/views/pages", "../css/site.css")
            '/srv/views/css/site.css'
            >>> resolver.resolve("/srv/views/pages", "/img/logo.png")
            '/srv/views/img/logo.png'
            >>> resolver.resolve("/srv/views/pages", "https://cdn.example.com/x.js")
            'https://cdn.example.com/x.js'
            >>> resolver.relative("/srv/views/css/site.css")
            '/css/site.css'

    """

    __slots__ = ("views",)

    def __init__(self, views: str | os.PathLike[str]):
        self.views = os.path.abspath(os.fspath(views))

    def resolve(self, base_dir: str, target: str) -> str:
        """Resolve ``target`` against ``base_dir`` (or the views root)."""
        if is_external(target):
            return target
        if is_root_relative(target):
            return os.path.normpath(os.path.join(self.views, target.lstrip("/")))
        return os.path.normpath(os.path.join(os.path.abspath(base_dir), target))

    def relative(self, path: str) -> str:
        """Root-relative URL path of a canonical absolute path."""
        rel = os.path.relpath(path, self.views)
        return "/" + rel.replace(os.sep, "/")

    def contains(self, path: str) -> bool:
        """Check whether a canonical path lies inside the views root."""
        return os.path.commonpath([self.views, path]) == self.views
