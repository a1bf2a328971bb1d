"""Document parsing and tree helpers built on BeautifulSoup.

Templates are parsed with the stdlib-backed ``html.parser`` builder, which
keeps unknown tags such as ``<if>`` and ``<repeat>`` exactly where the author
wrote them instead of relocating them the way an HTML5 tree builder would.
Multi-valued attributes are disabled so ``class`` and ``rel`` come back as
plain strings and survive a parse/serialize round trip unchanged.

"""

from __future__ import annotations

from collections.abc import Iterable

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PageElement, Script, Stylesheet, Tag

Document = BeautifulSoup

__all__ = [
    "Document",
    "Tag",
    "has_ancestor",
    "inner_html",
    "is_attached",
    "next_element_sibling",
    "parse",
    "replace_with_nodes",
    "serialize",
    "set_inner_html",
    "set_raw_text",
    "significant_children",
]


def parse(source: str) -> Document:
    """Parse markup into a mutable document tree."""
    return BeautifulSoup(source, "html.parser", multi_valued_attributes=None)


def serialize(document: Document) -> str:
    """Serialize a document back to markup."""
    return document.decode_contents()


def inner_html(node: Tag) -> str:
    return node.decode_contents()


def set_inner_html(document: Document, markup: str) -> None:
    """Replace everything inside ``document`` with freshly parsed ``markup``."""
    fresh = parse(markup)
    document.clear()
    for child in list(fresh.contents):
        document.append(child.extract())


def replace_with_nodes(node: Tag, nodes: Iterable[PageElement]) -> None:
    """Replace ``node`` in its parent with zero or more nodes, in order."""
    for child in list(nodes):
        node.insert_before(child.extract())
    node.extract()


def next_element_sibling(node: Tag) -> Tag | None:
    """Next sibling that is an element, skipping text and comments."""
    for sibling in node.next_siblings:
        if isinstance(sibling, Tag):
            return sibling
    return None


def is_attached(node: PageElement, document: Document) -> bool:
    """Check whether ``node`` is still reachable from ``document``.

    Nodes inside a removed subtree keep their local parent links, so the
    whole ancestor chain has to be walked.
    """
    if node is document:
        return True
    return any(parent is document for parent in node.parents)


def has_ancestor(node: PageElement, name: str) -> bool:
    return node.find_parent(name) is not None


def significant_children(document: Document) -> list[PageElement]:
    """Top-level children, ignoring whitespace-only text between elements."""
    return [
        child
        for child in document.contents
        if not (isinstance(child, NavigableString) and not child.strip())
    ]


def set_raw_text(node: Tag, text: str) -> None:
    """Set the text of a ``<script>`` or ``<style>`` element without escaping."""
    if node.name == "style":
        node.string = Stylesheet(text)
    else:
        node.string = Script(text)
