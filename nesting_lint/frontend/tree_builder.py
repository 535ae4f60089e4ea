"""Syntax tree construction from libclang translation units."""

from typing import Dict, Iterable, List, Optional, Tuple
import logging
import os

from ..engine.analyzer import SourceText
from ..engine.macro_filter import ExpansionProvider
from ..models.span import Span
from ..models.syntax import ConditionalBranches, ExpansionFrame, NodeKind, SyntaxNode
from .clang_analyzer import ClangAnalyzer

logger = logging.getLogger(__name__)

# Span used for cursors that have no source file (compiler generated)
SYNTHETIC_SPAN = Span("", 0, 0, 0, 0)


def cursor_span(cursor) -> Span:
    """Convert a cursor extent to a Span.

    Args:
        cursor: clang.cindex.Cursor

    Returns:
        Span of the cursor, or SYNTHETIC_SPAN when it has no file
    """
    extent = cursor.extent
    start, end = extent.start, extent.end
    if start.file is None:
        return SYNTHETIC_SPAN
    return Span(start.file.name, start.line, start.column, end.line, end.column)


def _same_file(path_a: str, path_b: str) -> bool:
    return os.path.normpath(path_a) == os.path.normpath(path_b)


class SyntaxTreeBuilder:
    """Build nesting-relevant SyntaxNode trees from C/C++ sources."""

    # Cursor kinds that represent function definitions
    FUNCTION_KINDS = {
        "FUNCTION_DECL",
        "CXX_METHOD",
        "CONSTRUCTOR",
        "DESTRUCTOR",
        "CONVERSION_FUNCTION",
        "FUNCTION_TEMPLATE",
    }

    TYPE_KINDS = {
        "CLASS_DECL",
        "STRUCT_DECL",
        "UNION_DECL",
        "CLASS_TEMPLATE",
    }

    LOOP_KINDS = {
        "WHILE_STMT": NodeKind.WHILE,
        "FOR_STMT": NodeKind.FOR,
        "CXX_FOR_RANGE_STMT": NodeKind.FOR,
        "DO_STMT": NodeKind.LOOP,
    }

    def __init__(self, clang_analyzer: ClangAnalyzer):
        """Initialize the tree builder.

        Args:
            clang_analyzer: ClangAnalyzer instance for parsing
        """
        self.analyzer = clang_analyzer
        self._ci = clang_analyzer.ci
        self._next_id = 0

    def build_string(self, source_code: str, filename: str = "temp.cpp") -> List[SyntaxNode]:
        """Parse in-memory source code and build its top-level nodes."""
        tu = self.analyzer.parse_string(source_code, filename)
        return self.build(tu, filename)

    def build(self, translation_unit, main_file: Optional[str] = None) -> List[SyntaxNode]:
        """Build nodes for the cursors of the main file.

        Node ids are sequential integers and unique within the translation unit.

        Args:
            translation_unit: clang.cindex.TranslationUnit
            main_file: Path of the main file (defaults to the unit's spelling)

        Returns:
            List of top-level SyntaxNode
        """
        main_file = main_file or translation_unit.spelling
        self._next_id = 0

        nodes: List[SyntaxNode] = []
        for cursor in translation_unit.cursor.get_children():
            # Skip declarations from included headers
            location_file = cursor.location.file
            if location_file is None or not _same_file(location_file.name, main_file):
                continue
            nodes.extend(self._convert(cursor))

        logger.debug(f"Built {self._next_id} nodes for {main_file}")
        return nodes

    def _allocate_id(self) -> int:
        node_id = self._next_id
        self._next_id += 1
        return node_id

    def _new_node(self, kind: NodeKind, cursor, name: Optional[str] = None) -> SyntaxNode:
        return SyntaxNode(self._allocate_id(), kind, cursor_span(cursor), name=name)

    def _convert(self, cursor, transparent_compound: bool = False) -> List[SyntaxNode]:
        """Convert a cursor into zero or more nodes.

        Cursors without nesting meaning are transparent: their descendants are
        returned in their place.
        """
        kind = cursor.kind.name

        if kind == "COMPOUND_STMT":
            if transparent_compound:
                return self._convert_children(cursor)
            return [self._node_with_children(NodeKind.BLOCK, cursor)]

        if kind == "NAMESPACE":
            return [self._node_with_children(NodeKind.MODULE, cursor, name=cursor.spelling)]

        if kind in self.TYPE_KINDS and cursor.is_definition():
            return [self._node_with_children(NodeKind.IMPL, cursor, name=cursor.spelling)]

        if kind in self.FUNCTION_KINDS and cursor.is_definition():
            return [self._node_with_children(
                NodeKind.FUNCTION, cursor, transparent_compound=True, name=cursor.spelling
            )]

        if kind == "LAMBDA_EXPR":
            return [self._node_with_children(NodeKind.CLOSURE, cursor, transparent_compound=True)]

        if kind == "IF_STMT":
            return [self._convert_if(cursor)]

        if kind in self.LOOP_KINDS:
            return [self._node_with_children(
                self.LOOP_KINDS[kind], cursor, transparent_compound=True
            )]

        if kind == "SWITCH_STMT":
            # The switch body compound is the arm level and stays a BLOCK
            return [self._node_with_children(NodeKind.MATCH, cursor)]

        if kind in ("CASE_STMT", "DEFAULT_STMT"):
            return self._convert_children(cursor, transparent_compound=True)

        if kind == "STMT_EXPR":
            return [self._node_with_children(
                NodeKind.EXPRESSION_BLOCK, cursor, transparent_compound=True
            )]

        return self._convert_children(cursor)

    def _convert_children(self, cursor, transparent_compound: bool = False) -> List[SyntaxNode]:
        nodes: List[SyntaxNode] = []
        for child in cursor.get_children():
            nodes.extend(self._convert(child, transparent_compound))
        return nodes

    def _node_with_children(
        self,
        kind: NodeKind,
        cursor,
        transparent_compound: bool = False,
        name: Optional[str] = None
    ) -> SyntaxNode:
        node = self._new_node(kind, cursor, name=name)
        node.children.extend(self._convert_children(cursor, transparent_compound))
        return node

    def _convert_if(self, cursor) -> SyntaxNode:
        """Convert an IF_STMT, recording which children are its branches."""
        node = self._new_node(NodeKind.CONDITIONAL, cursor)
        children = list(cursor.get_children())
        if not children:
            return node

        then_cursor, else_cursor = self._split_branches(cursor, children)
        prefix = children[:-2] if else_cursor is not None else children[:-1]

        # init statement / condition (may hold lambdas or statement expressions)
        for child in prefix:
            node.children.extend(self._convert(child))

        then_node = self._branch_node(then_cursor)
        node.children.append(then_node)

        else_node = None
        else_is_conditional = False
        if else_cursor is not None:
            if else_cursor.kind.name == "IF_STMT":
                else_node = self._convert_if(else_cursor)
                else_is_conditional = True
            else:
                else_node = self._branch_node(else_cursor)
            node.children.append(else_node)

        node.branches = ConditionalBranches(
            then_id=then_node.node_id,
            else_id=else_node.node_id if else_node is not None else None,
            else_is_conditional=else_is_conditional,
        )
        return node

    def _branch_node(self, cursor) -> SyntaxNode:
        """Build the BLOCK reported for an if branch.

        A branch that is not a compound statement is wrapped in a BLOCK with
        the same span.
        """
        node = self._new_node(NodeKind.BLOCK, cursor)
        if cursor.kind.name == "COMPOUND_STMT":
            node.children.extend(self._convert_children(cursor))
        else:
            node.children.extend(self._convert(cursor))
        return node

    def _split_branches(self, cursor, children: list) -> Tuple[object, Optional[object]]:
        """Return (then, else) cursors of an IF_STMT.

        The else branch exists when an ``else`` keyword lies between the last
        two children.
        """
        if len(children) < 3:
            return children[-1], None

        then_candidate, else_candidate = children[-2], children[-1]
        lower = then_candidate.extent.end.offset
        upper = else_candidate.extent.start.offset

        keyword = self._ci.TokenKind.KEYWORD
        for token in cursor.get_tokens():
            if token.kind == keyword and token.spelling == "else":
                if lower <= token.extent.start.offset <= upper:
                    return then_candidate, else_candidate

        return children[-1], None


class ClangExpansionProvider(ExpansionProvider):
    """Expansion ancestry from the macro instantiations of a translation unit.

    The ancestry of a span is every instantiation whose extent contains the
    span start, innermost first.
    """

    def __init__(self, translation_unit):
        self._sites: Dict[str, List[Tuple[Span, str]]] = {}
        for cursor in translation_unit.cursor.get_children():
            if cursor.kind.name != "MACRO_INSTANTIATION":
                continue
            span = cursor_span(cursor)
            if span.is_synthetic():
                continue
            key = os.path.normpath(span.file_path)
            self._sites.setdefault(key, []).append((span, cursor.spelling))

        count = sum(len(sites) for sites in self._sites.values())
        logger.debug(f"Collected {count} macro instantiations")

    def expansion_ancestry(self, span: Span) -> Iterable[ExpansionFrame]:
        if span.is_synthetic():
            return []

        sites = self._sites.get(os.path.normpath(span.file_path), [])
        matches = [
            (site, name) for site, name in sites
            if site.contains_position(span.start_line, span.start_column)
        ]
        # Innermost first: latest start, then earliest end
        matches.sort(key=lambda item: (item[0].start, tuple(-v for v in item[0].end)), reverse=True)
        return [ExpansionFrame(name, site) for site, name in matches]


class ClangSourceText(SourceText):
    """Source snippets read from files (or in-memory contents)."""

    def __init__(self, contents: Optional[Dict[str, str]] = None):
        """Initialize the source reader.

        Args:
            contents: Optional mapping of file path to source text for
                unsaved files
        """
        self._lines: Dict[str, List[str]] = {}
        for path, text in (contents or {}).items():
            self._lines[os.path.normpath(path)] = text.splitlines()

    def snippet(self, span: Span) -> str:
        lines = self._get_lines(span.file_path)
        if not lines or span.start_line < 1:
            return ""

        selected = lines[span.start_line - 1:span.end_line]
        if not selected:
            return ""
        if len(selected) == 1:
            return selected[0][span.start_column - 1:span.end_column - 1]
        selected[0] = selected[0][span.start_column - 1:]
        return "\n".join(selected)

    def _get_lines(self, file_path: str) -> List[str]:
        key = os.path.normpath(file_path)
        if key not in self._lines:
            try:
                with open(file_path, "r", encoding="utf-8", errors="replace") as f:
                    self._lines[key] = f.read().splitlines()
            except OSError as e:
                logger.warning(f"Failed to read {file_path}: {e}")
                self._lines[key] = []
        return self._lines[key]
