"""Trellis: server-side HTML templates with directive tags and asset resolution.

Templates are plain HTML with a handful of control tags, evaluated against a
scope mapping and rendered to a single HTML string. Every local script,
style and image they reference is resolved to a root-relative path that the
host server can serve straight from the views directory.

Quickstart:
    >>> from trellis import TemplateEngine
    >>> engine = TemplateEngine("views/")
    >>> engine.render("index.html", {"user": {"name": "Ada", "admin": False}})

Template syntax:
    ```html
    <if condition="user.admin">Hi admin</if>
    <elif condition="user.name">Hi #{user.name}</elif>
    <else>Hi guest</else>

    <repeat from="1" to="3" index="i"><li>Item #{i}</li></repeat>

    <import src="./partials/nav" class="top"></import>

    <script src="./app.js"></script>   <!-- rewritten to /js/app.js -->
    ```

Pipeline (per document, recursively for imports and repeat bodies):
    if/elif/else → repeat → @{}/#{} injections → import → script → style → img/link

Serving:
    ``engine.get_public_file(request.path)`` returns the absolute path of a
    script, style or resource that a render resolved, or None.

"""

from trellis.assets import AssetKind, AssetRecord
from trellis.environment import (
    DictLoader,
    ErrorCode,
    ExpressionError,
    ExpressionSyntaxError,
    FileSystemLoader,
    MalformedDirectiveError,
    TemplateEngine,
    TemplateError,
    TemplateNotFoundError,
    TemplateRuntimeError,
    UndefinedError,
    UnsupportedExpressionError,
)
from trellis.expressions import ExpressionEvaluator
from trellis.render_context import RenderContext, get_render_context

__version__ = "0.1.0"

__all__ = [
    "AssetKind",
    "AssetRecord",
    "DictLoader",
    "ErrorCode",
    "ExpressionError",
    "ExpressionEvaluator",
    "ExpressionSyntaxError",
    "FileSystemLoader",
    "MalformedDirectiveError",
    "RenderContext",
    "TemplateEngine",
    "TemplateError",
    "TemplateNotFoundError",
    "TemplateRuntimeError",
    "UndefinedError",
    "UnsupportedExpressionError",
    "__version__",
    "get_render_context",
]
