"""テスト共通のフィクスチャ。"""

from typing import List, Optional, Sequence, Union

import pytest

from nesting_lint.config import LintConfig
from nesting_lint.engine.analyzer import NestingAnalyzer
from nesting_lint.engine.walker import walk
from nesting_lint.models.span import Span
from nesting_lint.models.syntax import ConditionalBranches, NodeKind, SyntaxNode


class TreeFactory:
    """テスト用の構文木を組み立てる。

    ノードIDは連番、範囲は「ID+1 行目」の1行として割り当てる。
    """

    def __init__(self, file_path: str = "test.c"):
        self.file_path = file_path
        self._next_id = 0

    def span_for(self, node_id: int) -> Span:
        line = node_id + 1
        return Span(self.file_path, line, 1, line, 10)

    def node(
        self,
        kind: NodeKind,
        *children: SyntaxNode,
        span: Optional[Span] = None,
        name: Optional[str] = None
    ) -> SyntaxNode:
        node_id = self._next_id
        self._next_id += 1
        return SyntaxNode(
            node_id=node_id,
            kind=kind,
            span=span or self.span_for(node_id),
            children=list(children),
            name=name,
        )

    def func(self, *children: SyntaxNode, name: str = "f") -> SyntaxNode:
        return self.node(NodeKind.FUNCTION, *children, name=name)

    def block(self, *children: SyntaxNode, span: Optional[Span] = None) -> SyntaxNode:
        return self.node(NodeKind.BLOCK, *children, span=span)

    def closure(self, *children: SyntaxNode) -> SyntaxNode:
        return self.node(NodeKind.CLOSURE, *children)

    def loop(self, kind: NodeKind, *children: SyntaxNode) -> SyntaxNode:
        return self.node(kind, *children)

    def match(self, *arms: Sequence[SyntaxNode]) -> SyntaxNode:
        """各アームの本体をBLOCKとして持つMATCHを作る。"""
        node = self.node(NodeKind.MATCH)
        node.children = [self.block(*arm) for arm in arms]
        return node

    def if_(
        self,
        then: Sequence[SyntaxNode] = (),
        else_: Union[None, Sequence[SyntaxNode], SyntaxNode] = None,
        span: Optional[Span] = None,
        then_span: Optional[Span] = None
    ) -> SyntaxNode:
        """条件ノードを作る。

        Args:
            then: then ブロックの子ノード
            else_: else ブロックの子ノード、else-if の条件ノード、またはNone
        """
        node = self.node(NodeKind.CONDITIONAL, span=span)
        then_block = self.block(*then, span=then_span)
        node.children.append(then_block)

        else_node = None
        else_is_conditional = False
        if isinstance(else_, SyntaxNode):
            else_node = else_
            else_is_conditional = else_.kind is NodeKind.CONDITIONAL
        elif else_ is not None:
            else_node = self.block(*else_)
        if else_node is not None:
            node.children.append(else_node)

        node.branches = ConditionalBranches(
            then_id=then_block.node_id,
            else_id=else_node.node_id if else_node is not None else None,
            else_is_conditional=else_is_conditional,
        )
        return node

    def chain(self, length: int, with_else: bool = True) -> SyntaxNode:
        """長さ length の if / else-if (/ else) チェーンを作る。"""
        if with_else:
            tail: Union[None, Sequence[SyntaxNode], SyntaxNode] = []
            conditionals = length - 1
        else:
            tail = None
            conditionals = length
        # 内側（末尾）から組み立てるとIDが逆順になるため、先に根を作る
        root = self.node(NodeKind.CONDITIONAL)
        nodes = [root] + [self.node(NodeKind.CONDITIONAL) for _ in range(conditionals - 1)]
        for i, cond in enumerate(nodes):
            then_block = self.block()
            cond.children.append(then_block)
            if i + 1 < len(nodes):
                else_node = nodes[i + 1]
                else_is_conditional = True
            elif tail is not None:
                else_node = self.block()
                else_is_conditional = False
            else:
                else_node = None
                else_is_conditional = False
            if else_node is not None:
                cond.children.append(else_node)
            cond.branches = ConditionalBranches(
                then_id=then_block.node_id,
                else_id=else_node.node_id if else_node is not None else None,
                else_is_conditional=else_is_conditional,
            )
        return root

    def nested_ifs(self, count: int) -> SyntaxNode:
        """count 段にネストした if を作る（最も内側は空）。"""
        inner: List[SyntaxNode] = []
        for _ in range(count):
            inner = [self.if_(then=inner)]
        return inner[0]


def run_analyzer(config: LintConfig, *roots: SyntaxNode, **kwargs):
    """構文木を解析し、(診断リスト, 解析器) を返す。"""
    analyzer = NestingAnalyzer(config, **kwargs)
    for root in roots:
        walk(root, analyzer)
    return analyzer.emit_all(), analyzer


@pytest.fixture
def analyze():
    return run_analyzer


@pytest.fixture
def tree() -> TreeFactory:
    return TreeFactory()


@pytest.fixture
def config() -> LintConfig:
    return LintConfig(debug=False)
