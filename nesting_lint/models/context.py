"""ネスト解析のコンテキストと違反レコードのモデル。"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, TYPE_CHECKING

from .span import Span
from .syntax import NodeId, NodeKind

if TYPE_CHECKING:
    from ..config import LintConfig

HELP_MESSAGE = "use early returns and guard clauses to reduce nesting"


class ContextKind(Enum):
    """スタック上のコンテキスト種別。"""
    FUNCTION = "func"
    MODULE = "mod"
    TRAIT = "trait"
    IMPL = "impl"
    IF = "if"
    THEN = "then"
    ELSE_IF = "else-if"
    ELSE = "else"
    MATCH = "match"
    CLOSURE = "closure"
    BLOCK = "block"
    EXPRESSION_BLOCK = "expr-block"
    WHILE = "while"
    FOR = "for"
    LOOP = "loop"

    def counts_toward_depth(self, config: "LintConfig") -> bool:
        """このコンテキストがネスト深さに数えられるかを判定する。

        Args:
            config: 解析設定

        Returns:
            深さに数える場合True
        """
        if self is ContextKind.CLOSURE:
            return not config.ignore_closures
        return self not in _DISPATCH_KINDS

    def is_if_branch(self) -> bool:
        return self in _BRANCH_KINDS

    def is_item_root(self) -> bool:
        """関数・クロージャなど、深さ計算の起点になりうる種別かを確認する。"""
        return self in (ContextKind.FUNCTION, ContextKind.CLOSURE)

    def __str__(self) -> str:
        return self.value


# IF と MATCH は分岐の振り分けのみで、本体は子コンテキストとして数える
_DISPATCH_KINDS = frozenset({
    ContextKind.MODULE,
    ContextKind.TRAIT,
    ContextKind.IMPL,
    ContextKind.IF,
    ContextKind.MATCH,
})

_BRANCH_KINDS = frozenset({
    ContextKind.THEN,
    ContextKind.ELSE_IF,
    ContextKind.ELSE,
})

# 構造ノード種別から既定のコンテキスト種別への対応
NODE_CONTEXT_KINDS = {
    NodeKind.FUNCTION: ContextKind.FUNCTION,
    NodeKind.MODULE: ContextKind.MODULE,
    NodeKind.TRAIT: ContextKind.TRAIT,
    NodeKind.IMPL: ContextKind.IMPL,
    NodeKind.CONDITIONAL: ContextKind.IF,
    NodeKind.BLOCK: ContextKind.BLOCK,
    NodeKind.EXPRESSION_BLOCK: ContextKind.EXPRESSION_BLOCK,
    NodeKind.MATCH: ContextKind.MATCH,
    NodeKind.CLOSURE: ContextKind.CLOSURE,
    NodeKind.WHILE: ContextKind.WHILE,
    NodeKind.FOR: ContextKind.FOR,
    NodeKind.LOOP: ContextKind.LOOP,
}


class ReasonKind(Enum):
    """違反の理由種別。"""
    DEPTH = "depth"
    CONSECUTIVE_BRANCHES = "consecutive_branches"


@dataclass(frozen=True)
class Reason:
    """違反の理由と観測値。"""
    kind: ReasonKind
    count: int

    @classmethod
    def depth(cls, observed_depth: int) -> "Reason":
        return cls(ReasonKind.DEPTH, observed_depth)

    @classmethod
    def consecutive_branches(cls, observed_count: int) -> "Reason":
        return cls(ReasonKind.CONSECUTIVE_BRANCHES, observed_count)

    def outer_context_label(self) -> str:
        if self.kind is ReasonKind.DEPTH:
            return "outer nested context"
        return "first if in sequence"

    def label(self) -> str:
        if self.kind is ReasonKind.DEPTH:
            return "nesting depth"
        return "consecutive if-else statements"

    def message(self, config: "LintConfig") -> str:
        """診断メッセージを生成する。

        Args:
            config: 閾値を含む解析設定

        Returns:
            人間向けのメッセージ
        """
        if self.kind is ReasonKind.DEPTH:
            first_violating = config.max_depth + 1
            if self.count > first_violating:
                levels = f"{first_violating} to {self.count} levels"
            else:
                levels = f"{self.count} levels"
            return f"{self.label()}: {config.max_depth} max allowed, {levels} found"
        return (
            f"{self.label()}: {config.max_consecutive_branches} max allowed, "
            f"{self.count} found"
        )

    def with_count(self, count: int) -> "Reason":
        return Reason(self.kind, count)


@dataclass
class Violation:
    """閾値超過の記録。

    最初に閾値を超えた時点で作成され、同じ違反が続く間はカウントのみ更新される。
    所有コンテキストがスタックから取り出された時点で一度だけ確定する。
    """
    primary_span: Span
    outer_span: Optional[Span]
    kind: ContextKind
    reason: Reason
    owner_id: NodeId


@dataclass
class Context:
    """スタック上の1エントリ。"""
    node_id: NodeId
    node_kind: NodeKind
    kind: ContextKind
    span: Span
    # 分岐および else-if の振り分けノードが属するチェーンの根
    chain_root_id: Optional[NodeId] = None
    # 以下はチェーンの根（新規の IF）でのみ使用する
    consecutive_branch_count: int = 0
    run_start_span: Optional[Span] = None
    open_branch_violation: Optional[Violation] = None

    def is_chain_root(self) -> bool:
        return self.kind is ContextKind.IF and self.chain_root_id is None

    def __str__(self) -> str:
        return f"{self.kind} @ {self.span}"


@dataclass(frozen=True)
class BranchChain:
    """完了した if/else-if/else チェーン。"""
    root_span: Span
    length: int
