"""C/C++ nesting depth and consecutive if-else lint."""

from .config import Config, LintConfig
from .engine import NestingAnalyzer, analyze_unit, walk
from .models import Diagnostic, Span

__version__ = "0.1.0"

__all__ = [
    "Config",
    "LintConfig",
    "NestingAnalyzer",
    "analyze_unit",
    "walk",
    "Diagnostic",
    "Span",
    "__version__",
]
