from trellis.directives.injection import Injection, InjectionKind, guard, scan, substitute, unguard
from trellis.directives.processor import DirectiveProcessor

__all__ = [
    "DirectiveProcessor",
    "Injection",
    "InjectionKind",
    "guard",
    "scan",
    "substitute",
    "unguard",
]
