"""Trellis RenderContext: per-render state kept out of the user's scope.

The scope mapping belongs to the template author: directives read and write
it freely. Bookkeeping the engine needs while it walks nested imports (which
template is being processed, how deep the import chain is) lives here in a
ContextVar instead, so it never collides with a scope variable and stays
isolated per thread.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field


@dataclass
class RenderContext:
    """Per-render state isolated from the scope.

    Attributes:
        template_name: Template currently being processed, for error messages
        import_depth: Current nesting depth of ``<import>`` directives
        max_import_depth: Maximum allowed depth; catches circular imports
        template_stack: Chain of templates that led to the current one
    """

    template_name: str | None = None
    import_depth: int = 0
    # 50 is deep enough for any real layout while catching A -> B -> A early.
    max_import_depth: int = 50
    template_stack: list[str] = field(default_factory=list)

    def check_import_depth(self, template_name: str) -> None:
        """Raise if importing ``template_name`` would exceed the depth limit.

        Raises:
            TemplateRuntimeError: If depth >= max_import_depth
        """
        if self.import_depth >= self.max_import_depth:
            from trellis.environment.exceptions import TemplateRuntimeError

            raise TemplateRuntimeError(
                f"Maximum import depth exceeded ({self.max_import_depth}) "
                f"when importing '{template_name}'",
                template_name=self.template_name,
                template_stack=self.stack(),
                suggestion="Check for circular imports: A → B → A",
            )

    def stack(self) -> list[str]:
        """Import chain including the current template."""
        if self.template_name is None:
            return list(self.template_stack)
        return [*self.template_stack, self.template_name]

    def child_context(self, template_name: str) -> RenderContext:
        """Create the context for an imported template one level deeper."""
        return RenderContext(
            template_name=template_name,
            import_depth=self.import_depth + 1,
            max_import_depth=self.max_import_depth,
            template_stack=self.stack(),
        )


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "trellis_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Return the active RenderContext, or None outside a render."""
    return _render_context.get()


@contextmanager
def render_context(
    template_name: str | None = None,
    *,
    max_import_depth: int = 50,
) -> Iterator[RenderContext]:
    """Install a fresh RenderContext for the duration of one render.

    Example:
        with render_context("index.html") as ctx:
            processor.process_template(path, document, scope)
    """
    ctx = RenderContext(template_name=template_name, max_import_depth=max_import_depth)
    token = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)


@contextmanager
def import_context(template_name: str) -> Iterator[RenderContext]:
    """Enter a child context while an imported template is processed.

    Raises:
        TemplateRuntimeError: If the import depth limit is exceeded
    """
    parent = _render_context.get()
    if parent is None:
        parent = RenderContext()
    parent.check_import_depth(template_name)
    token = _render_context.set(parent.child_context(template_name))
    try:
        yield _render_context.get()
    finally:
        _render_context.reset(token)
