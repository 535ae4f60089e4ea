"""libclang front end for nesting depth analysis."""

from .clang_analyzer import ClangAnalyzer, ClangParseError
from .tree_builder import (
    SyntaxTreeBuilder,
    ClangExpansionProvider,
    ClangSourceText,
    cursor_span,
)

__all__ = [
    "ClangAnalyzer",
    "ClangParseError",
    "SyntaxTreeBuilder",
    "ClangExpansionProvider",
    "ClangSourceText",
    "cursor_span",
]
