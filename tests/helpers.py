"""Helpers shared by Trellis test modules."""

from __future__ import annotations

from trellis import DictLoader, TemplateEngine


def memory_engine(files: dict[str, str], **options) -> tuple[TemplateEngine, DictLoader]:
    """Engine over an in-memory views tree rooted at ``/views``."""
    loader = DictLoader({f"/views/{name}": source for name, source in files.items()})
    return TemplateEngine("/views", loader=loader, **options), loader


def assert_contains(result: str, *expected_parts: str) -> None:
    """Assert rendered output contains all expected parts."""
    for part in expected_parts:
        assert part in result, (
            f"Rendered output missing expected content:\n"
            f"  Missing: {part!r}\n"
            f"  Actual: {result!r}"
        )
