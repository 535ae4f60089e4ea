"""ネスト深さ解析エンジン。

フロントエンドは構文木を深さ優先でたどり、各ノードについて `on_enter` と
`on_exit` を行きがけ順・帰りがけ順で呼び出す。走査が終わったら `emit_all` で
診断を受け取る。1つの解析単位につき1つのインスタンスを使い、再利用する場合は
`reset` を呼ぶ。
"""

from typing import List, Optional, Set
import logging

from ..config import LintConfig
from ..models.context import NODE_CONTEXT_KINDS, BranchChain, Context
from ..models.diagnostic import Diagnostic
from ..models.span import Span
from ..models.syntax import ConditionalBranches, NodeId, NodeKind
from .branch_classifier import IfElseChainClassifier
from .context_stack import ContextStack
from .errors import StackProtocolError
from .macro_filter import ExpansionProvider, MacroExclusionFilter

logger = logging.getLogger(__name__)

TRACE_LOGGER_NAME = "nesting_lint.trace"
trace_logger = logging.getLogger(TRACE_LOGGER_NAME)

# デバッグトレースに表示するソース断片の最大長
SNIPPET_LENGTH = 60


class SourceText:
    """範囲に対応するソース文字列の取得（デバッグトレース専用）。"""

    def snippet(self, span: Span) -> str:
        raise NotImplementedError


class NestingAnalyzer:
    """ネスト深さと連続 if-else 分岐を検査する解析器。"""

    def __init__(
        self,
        config: LintConfig,
        expansion_provider: Optional[ExpansionProvider] = None,
        source_text: Optional[SourceText] = None
    ):
        """解析器を初期化する。

        Args:
            config: 解析設定
            expansion_provider: マクロ展開の祖先情報（マクロ除外に使用）
            source_text: ソース断片の取得（デバッグトレースに使用）
        """
        self.config = config
        self.expansion_provider = expansion_provider
        self.source_text = source_text
        self.reset()

    def reset(self) -> None:
        """状態を破棄し、新しい解析単位を受け付けられるようにする。"""
        trace = self._trace_event if self.config.debug else None
        self._stack = ContextStack(self.config, trace=trace)
        self._classifier = IfElseChainClassifier()
        self._macro_filter = MacroExclusionFilter(
            self.config.ignore_macros,
            self.expansion_provider
        )
        self._skipped: Set[NodeId] = set()
        self._finished = False

    @property
    def depth(self) -> int:
        return self._stack.depth()

    @property
    def stack(self) -> ContextStack:
        return self._stack

    @property
    def chains(self) -> List[BranchChain]:
        """完了した if チェーン（完了順）。"""
        return list(self._stack.chains)

    def on_enter(
        self,
        node_id: NodeId,
        kind: NodeKind,
        span: Span,
        branches: Optional[ConditionalBranches] = None
    ) -> None:
        """ノードに入る。

        Args:
            node_id: 解析単位内で一意なノードID
            kind: ノード種別
            span: ノードの範囲
            branches: 条件ノードの then / else 子ノード情報
        """
        self._check_active()

        if span.is_synthetic() or span.is_empty():
            self._skip(node_id, span, "skip")
            return

        if self._macro_filter.is_excluded(node_id, span):
            self._skip(node_id, span, "skip macro")
            return

        context_kind = NODE_CONTEXT_KINDS[kind]
        chain_root_id = None

        if kind is NodeKind.CONDITIONAL:
            classified = self._classifier.classify_conditional(node_id, span, branches)
            chain_root_id = classified.chain_root_id
        else:
            assignment = self._classifier.classify_block(node_id)
            if assignment is not None:
                context_kind = assignment.role
                chain_root_id = assignment.chain_root_id

        context = Context(
            node_id=node_id,
            node_kind=kind,
            kind=context_kind,
            span=span,
            chain_root_id=chain_root_id,
        )
        depth = self._stack.push(context)
        self._trace(depth, f"push {context_kind}", span)

    def on_exit(self, node_id: NodeId, kind: Optional[NodeKind] = None) -> None:
        """ノードから出る。

        Args:
            node_id: 終了するノードのID
            kind: ノード種別（指定時はスタック先頭との一致を検証）

        Raises:
            StackProtocolError: スタック先頭のノードと一致しない場合
        """
        self._check_active()

        if node_id in self._skipped:
            self._skipped.discard(node_id)
            return

        context = self._stack.pop(node_id, kind)
        self._trace(self._stack.depth(), f"pop {context.kind}", context.span)

    def emit_all(self) -> List[Diagnostic]:
        """確定した違反を診断として返す。

        走査が完了し、スタックが空であることを前提とする。呼び出し後は
        `reset` するまで解析器を使えない。

        Returns:
            確定順（走査順）の診断リスト

        Raises:
            UnflushedViolationError: 未確定の違反や閉じていないコンテキストがある場合
            StackProtocolError: スキップしたノードの終了が報告されていない場合
        """
        self._check_active()
        self._stack.check_finished()

        if self._skipped:
            raise StackProtocolError(
                f"{len(self._skipped)} skipped nodes were never exited",
                expected=None,
                actual=sorted(map(repr, self._skipped))
            )

        diagnostics = [
            Diagnostic.from_violation(violation, self.config)
            for violation in self._stack.violations
        ]
        self._finished = True

        logger.debug(
            f"Emitted {len(diagnostics)} diagnostics, "
            f"{len(self._stack.chains)} if chains"
        )
        return diagnostics

    def _check_active(self) -> None:
        if self._finished:
            raise StackProtocolError("analyzer used after emit_all() without reset()")

    def _skip(self, node_id: NodeId, span: Span, method: str) -> None:
        self._skipped.add(node_id)
        self._classifier.discard(node_id)
        self._trace(self._stack.depth(), method, span)

    def _trace_event(self, message: str, span: Span) -> None:
        self._trace(self._stack.depth(), message, span)

    def _trace(self, depth: int, method: str, span: Span) -> None:
        if not self.config.debug:
            return

        location_filter = self.config.debug_location_filter
        if location_filter is not None and not location_filter.matches(span):
            return

        indent = "  " * len(self._stack)
        snippet = ""
        if self.source_text is not None:
            text = self.source_text.snippet(span)
            first_line = text.splitlines()[0] if text else ""
            snippet = first_line.strip()[:SNIPPET_LENGTH]

        trace_logger.debug(f"{indent}[{depth:2}] {method} {span} {snippet}".rstrip())
