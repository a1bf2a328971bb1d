"""Shared constants for Trellis."""

from __future__ import annotations

import re

# Directive tags consumed by the processor
IF_TAG = "if"
ELIF_TAG = "elif"
ELSE_TAG = "else"
REPEAT_TAG = "repeat"
IMPORT_TAG = "import"

BRANCH_TAGS: frozenset[str] = frozenset({ELIF_TAG, ELSE_TAG})

# <import> dispatch by file extension
TEMPLATE_EXTENSIONS: frozenset[str] = frozenset({".html", ".htm", ".xml", ".svg"})
SCRIPT_EXTENSIONS: frozenset[str] = frozenset({".js", ".mjs"})
STYLE_EXTENSIONS: frozenset[str] = frozenset({".css"})

DEFAULT_TEMPLATE_EXTENSION = ".html"

# Inline <script> blocks whose imports are rewritten
JAVASCRIPT_TYPES: frozenset[str] = frozenset(
    {
        "",
        "module",
        "text/javascript",
        "application/javascript",
        "application/ecmascript",
        "text/ecmascript",
    }
)

HTTP_PATTERN = re.compile(r"^https?:", re.IGNORECASE)

# Scheme-qualified (data:, mailto:, blob:), protocol-relative or fragment-only
EXTERNAL_PATTERN = re.compile(r"^(?:[a-z][a-z0-9+.\-]*:|//|#)", re.IGNORECASE)

# ?query and #fragment suffix of a resource reference
URL_SUFFIX_PATTERN = re.compile(r"[?#].*$", re.DOTALL)

# Inserted before every "{" of a substituted value so later injection passes
# cannot read it as an opener; removed from the final output
INJECTION_GUARD = "\ue000"  # private use area
