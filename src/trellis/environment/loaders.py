"""File loaders for the Trellis engine.

Loaders are the engine's only window onto the file system. They implement
``get_source(path)`` returning the file's text and ``exists(path)``; every
path they receive is already canonical and absolute.

Built-in Loaders:
- `FileSystemLoader`: Read files from disk
- `DictLoader`: Serve files from an in-memory mapping (testing/embedded)

Custom Loaders:
Implement the same two methods:
    ```python
    class BundleLoader:
        def get_source(self, path: str) -> str:
            try:
                return bundle.read(path).decode()
            except KeyError:
                raise TemplateNotFoundError(path)

        def exists(self, path: str) -> bool:
            return path in bundle
    ```

"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from trellis.environment.exceptions import TemplateNotFoundError

logger = logging.getLogger(__name__)


class FileSystemLoader:
    """Read template and asset files from disk.

    Missing files raise ``TemplateNotFoundError``; any other read failure
    (permissions, a directory in place of a file, undecodable bytes)
    propagates as the original ``OSError``/``UnicodeDecodeError``.

    Example:
            >>> loader = FileSystemLoader()
            >>> loader.get_source("/srv/views/index.html")
            '<html>...'

    """

    __slots__ = ("_encoding",)

    def __init__(self, encoding: str = "utf-8"):
        self._encoding = encoding

    def get_source(self, path: str) -> str:
        """Read a file as text."""
        try:
            source = Path(path).read_text(self._encoding)
        except FileNotFoundError:
            raise TemplateNotFoundError(path) from None
        logger.debug("Read %s (%d chars)", path, len(source))
        return source

    def exists(self, path: str) -> bool:
        return os.path.isfile(path)


class DictLoader:
    """Serve files from an in-memory dictionary.

    Maps absolute paths to source strings. Useful for testing and for
    embedding a small views tree in code.

    Example:
            >>> loader = DictLoader({
            ...     "/views/index.html": "<import src='./nav'></import>",
            ...     "/views/nav.html": "<nav>Home</nav>",
            ... })
            >>> engine = TemplateEngine("/views", loader=loader)
            >>> engine.render("index.html")
            '<nav>Home</nav>'

    Attributes:
        reads: Number of ``get_source()`` calls per path, for cache assertions

    """

    __slots__ = ("_mapping", "reads")

    def __init__(self, mapping: dict[str, str]):
        self._mapping = {os.path.normpath(path): source for path, source in mapping.items()}
        self.reads: dict[str, int] = {}

    def get_source(self, path: str) -> str:
        path = os.path.normpath(path)
        if path not in self._mapping:
            from difflib import get_close_matches

            msg = f"File '{path}' not found"
            matches = get_close_matches(path, sorted(self._mapping), n=1, cutoff=0.6)
            if matches:
                msg += f". Did you mean '{matches[0]}'?"
            raise TemplateNotFoundError(path, msg)
        self.reads[path] = self.reads.get(path, 0) + 1
        return self._mapping[path]

    def exists(self, path: str) -> bool:
        return os.path.normpath(path) in self._mapping
