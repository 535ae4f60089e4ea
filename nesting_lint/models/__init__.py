"""Data models for nesting depth analysis."""

from .span import Span, LocationRange
from .syntax import (
    NodeId,
    NodeKind,
    ConditionalBranches,
    ExpansionFrame,
    SyntaxNode,
)
from .context import (
    ContextKind,
    Context,
    Reason,
    ReasonKind,
    Violation,
    BranchChain,
    HELP_MESSAGE,
)
from .diagnostic import Diagnostic, LINT_NAME

__all__ = [
    "Span",
    "LocationRange",
    "NodeId",
    "NodeKind",
    "ConditionalBranches",
    "ExpansionFrame",
    "SyntaxNode",
    "ContextKind",
    "Context",
    "Reason",
    "ReasonKind",
    "Violation",
    "BranchChain",
    "HELP_MESSAGE",
    "Diagnostic",
    "LINT_NAME",
]
