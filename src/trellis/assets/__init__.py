"""Asset resolution: path canonicalization, caching and content rewriting."""

from trellis.assets.cache import AssetCache, AssetKind, AssetRecord
from trellis.assets.paths import PathResolver, is_external, is_http, is_root_relative
from trellis.assets.resolvers import (
    AssetResolver,
    ResourceResolver,
    ScriptResolver,
    StyleResolver,
)

__all__ = [
    "AssetCache",
    "AssetKind",
    "AssetRecord",
    "AssetResolver",
    "PathResolver",
    "ResourceResolver",
    "ScriptResolver",
    "StyleResolver",
    "is_external",
    "is_http",
    "is_root_relative",
]
