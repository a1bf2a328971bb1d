"""Pytest configuration and fixtures for Trellis tests."""

from pathlib import Path

import pytest

from trellis import TemplateEngine


@pytest.fixture
def views(tmp_path: Path) -> Path:
    """Empty views root on disk."""
    root = tmp_path / "views"
    root.mkdir()
    return root


@pytest.fixture
def write(views: Path):
    """Write a file under the views root, creating directories as needed."""

    def _write(name: str, content: str | bytes) -> Path:
        path = views / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def engine(views: Path) -> TemplateEngine:
    """Engine over the on-disk views root with caching enabled."""
    return TemplateEngine(views)


@pytest.fixture
def render(engine: TemplateEngine, write):
    """Render a one-off template source written to ``index.html``."""

    def _render(source: str, scope: dict | None = None) -> str:
        write("index.html", source)
        engine.clear_cache()
        return engine.render("index.html", scope if scope is not None else {})

    return _render
