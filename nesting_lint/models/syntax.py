"""Neutral syntax tree handed from a front end to the nesting analyzer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable, Iterator, List, Optional

from .span import Span

# Opaque node identity; only unique within one translation unit.
NodeId = Hashable


class NodeKind(Enum):
    """Structural node kinds reported by a front end."""
    FUNCTION = "function"
    MODULE = "module"
    TRAIT = "trait"
    IMPL = "impl"
    CONDITIONAL = "conditional"
    BLOCK = "block"
    EXPRESSION_BLOCK = "expression_block"
    MATCH = "match"
    CLOSURE = "closure"
    WHILE = "while"
    FOR = "for"
    LOOP = "loop"


@dataclass(frozen=True)
class ConditionalBranches:
    """Identities of a conditional's branch nodes.

    Attributes:
        then_id: node reported for the "then" branch
        else_id: node reported for the alternative, if any
        else_is_conditional: True when the alternative is itself a conditional
            (an ``else if``)
    """
    then_id: NodeId
    else_id: Optional[NodeId] = None
    else_is_conditional: bool = False


@dataclass(frozen=True)
class ExpansionFrame:
    """One macro invocation in a span's expansion ancestry."""
    macro_name: str
    call_site: Span


@dataclass
class SyntaxNode:
    """A structural node and its structural descendants."""
    node_id: NodeId
    kind: NodeKind
    span: Span
    children: List["SyntaxNode"] = field(default_factory=list)
    branches: Optional[ConditionalBranches] = None
    name: Optional[str] = None

    def iter_nodes(self) -> Iterator["SyntaxNode"]:
        """Iterate this node and all descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __str__(self) -> str:
        label = f" {self.name}" if self.name else ""
        return f"{self.kind.value}{label} @ {self.span}"
