"""Asset records and the per-kind asset cache.

Every script, style and resource referenced during a render becomes an
``AssetRecord`` keyed by its canonical absolute path. Two spellings of the
same file (``./a.js`` from one directory, ``../js/a.js`` from another)
collapse to a single record, and the record's content is read and rewritten
at most once.

Cycle Safety:
``get_or_create()`` stores the new record *before* populating it. When a
style imports a style that imports the first one back, the inner lookup
finds the half-built record, takes its relative path and returns, so the
recursion ends after one visit per file.

"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class AssetKind(Enum):
    """The three independent asset caches."""

    SCRIPT = "script"
    STYLE = "style"
    RESOURCE = "resource"


@dataclass(slots=True, eq=False)
class AssetRecord:
    """A resolved script, style or resource.

    Attributes:
        kind: Which cache the record lives in
        path: Canonical absolute path, or None for inline content
        rel: Root-relative path embedded in rendered markup, or None for inline content
        content: Rewritten text for scripts and styles; None for resources
    """

    kind: AssetKind
    path: str | None
    rel: str | None
    content: str | None = None

    @property
    def is_inline(self) -> bool:
        return self.path is None


def inline_key(base_dir: str, content: str) -> str:
    """Cache key for inline content that has no file path of its own."""
    digest = hashlib.sha256(f"{base_dir}\0{content}".encode()).hexdigest()
    return f"inline:{digest}"


class AssetCache:
    """Three content caches (scripts, styles, resources) keyed by path.

    Not safe for concurrent mutation on its own; ``TemplateEngine`` holds
    its lock around every render that touches the cache.

    Example:
            >>> cache = AssetCache()
            >>> record = cache.get_or_create(
            ...     AssetKind.SCRIPT, "/views/a.js", "/a.js", populate=load_script
            ... )
            >>> cache.get_or_create(AssetKind.SCRIPT, "/views/a.js", "/a.js", load_script) is record
            True

    """

    __slots__ = ("_records",)

    def __init__(self) -> None:
        self._records: dict[AssetKind, dict[str, AssetRecord]] = {
            kind: {} for kind in AssetKind
        }

    def get(self, kind: AssetKind, key: str) -> AssetRecord | None:
        return self._records[kind].get(key)

    def get_or_create(
        self,
        kind: AssetKind,
        key: str,
        rel: str | None,
        populate: Callable[[AssetRecord], None] | None = None,
    ) -> AssetRecord:
        """Return the record for ``key``, creating and populating it once.

        Args:
            kind: Which cache to use
            key: Canonical absolute path (or ``inline_key()`` for inline content)
            rel: Root-relative path for file-backed records
            populate: Called once with the new record to fill in its content

        If ``populate`` raises, the record is evicted before the error
        propagates so a later render retries instead of serving a stub.
        """
        records = self._records[kind]
        record = records.get(key)
        if record is not None:
            return record

        path = None if key.startswith("inline:") else key
        record = AssetRecord(kind=kind, path=path, rel=rel)
        records[key] = record
        logger.debug("Created %s record %s", kind.value, rel or key)
        if populate is not None:
            try:
                populate(record)
            except BaseException:
                del records[key]
                raise
        return record

    def contains(self, path: str) -> bool:
        """Check whether any cache holds a file-backed record for ``path``."""
        return any(path in records for records in self._records.values())

    def records(self, kind: AssetKind | None = None) -> Iterator[AssetRecord]:
        kinds = [kind] if kind is not None else list(AssetKind)
        for k in kinds:
            yield from self._records[k].values()

    def clear(self) -> None:
        for records in self._records.values():
            records.clear()

    def __len__(self) -> int:
        return sum(len(records) for records in self._records.values())
