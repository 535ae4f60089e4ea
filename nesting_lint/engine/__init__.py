"""Nesting depth analysis engine."""

from .errors import (
    AnalysisError,
    StackProtocolError,
    UnflushedViolationError,
    ExpansionWalkError,
)
from .context_stack import ContextStack
from .branch_classifier import IfElseChainClassifier, BranchAssignment
from .macro_filter import (
    ExpansionProvider,
    NoExpansionProvider,
    MacroExclusionFilter,
    MAX_EXPANSION_DEPTH,
)
from .analyzer import NestingAnalyzer, SourceText, TRACE_LOGGER_NAME
from .walker import UnitResult, walk, analyze_unit

__all__ = [
    "AnalysisError",
    "StackProtocolError",
    "UnflushedViolationError",
    "ExpansionWalkError",
    "ContextStack",
    "IfElseChainClassifier",
    "BranchAssignment",
    "ExpansionProvider",
    "NoExpansionProvider",
    "MacroExclusionFilter",
    "MAX_EXPANSION_DEPTH",
    "NestingAnalyzer",
    "SourceText",
    "TRACE_LOGGER_NAME",
    "UnitResult",
    "walk",
    "analyze_unit",
]
