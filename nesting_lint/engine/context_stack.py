"""コンテキストスタックと違反の評価。

スタックへの変更は push / pop のみで行い、pop 時にノードIDの一致を一元的に検証する。
深さ違反と連続分岐違反は、所有するコンテキストが取り出された時点で確定する。
"""

from typing import Callable, Iterator, List, Optional
import logging

from ..config import LintConfig
from ..models.context import BranchChain, Context, ContextKind, Reason, Violation
from ..models.span import Span
from ..models.syntax import NodeId, NodeKind
from .errors import StackProtocolError, UnflushedViolationError

logger = logging.getLogger(__name__)

TraceCallback = Callable[[str, Span], None]


class ContextStack:
    """アクティブなスコープのスタック。

    深さはスタック上で深さに数える種別のエントリ数で、最も外側の
    関数（またはクロージャ）はアイテムの根として数えない。
    """

    def __init__(self, config: LintConfig, trace: Optional[TraceCallback] = None):
        """スタックを初期化する。

        Args:
            config: 解析設定
            trace: デバッグトレース出力用のコールバック（任意）
        """
        self.config = config
        self._trace = trace
        self._contexts: List[Context] = []
        self._open_depth_violation: Optional[Violation] = None

        # 確定済みの違反（確定順）
        self.violations: List[Violation] = []

        # 完了したチェーン
        self.chains: List[BranchChain] = []

    def __len__(self) -> int:
        return len(self._contexts)

    def __iter__(self) -> Iterator[Context]:
        return iter(self._contexts)

    @property
    def top(self) -> Optional[Context]:
        return self._contexts[-1] if self._contexts else None

    @property
    def open_depth_violation(self) -> Optional[Violation]:
        return self._open_depth_violation

    def depth(self) -> int:
        """現在のネスト深さを返す。"""
        return sum(1 for _ in self._counted_contexts())

    def open_violation_count(self) -> int:
        """未確定の違反数を返す。"""
        count = 1 if self._open_depth_violation is not None else 0
        count += sum(1 for ctx in self._contexts if ctx.open_branch_violation is not None)
        return count

    def push(self, context: Context) -> int:
        """コンテキストを積み、深さ違反を評価する。

        Args:
            context: 新しいコンテキスト

        Returns:
            積んだ後の深さ
        """
        self._contexts.append(context)
        depth = self.depth()

        if (
            context.kind.counts_toward_depth(self.config)
            and depth > self.config.max_depth
        ):
            self._record_depth(context, depth)

        return depth

    def pop(self, node_id: NodeId, node_kind: Optional[NodeKind] = None) -> Context:
        """先頭のコンテキストを取り出し、所有する違反を確定する。

        Args:
            node_id: 終了するノードのID
            node_kind: 終了するノードの種別（指定時は一致を検証）

        Returns:
            取り出したコンテキスト

        Raises:
            StackProtocolError: 先頭のコンテキストと一致しない場合
        """
        if not self._contexts:
            raise StackProtocolError(
                "exit on an empty context stack",
                expected=None,
                actual=node_id
            )

        top = self._contexts[-1]
        if top.node_id != node_id:
            raise StackProtocolError(
                f"exit does not match innermost context {top}",
                expected=top.node_id,
                actual=node_id
            )
        if node_kind is not None and node_kind is not top.node_kind:
            raise StackProtocolError(
                f"exit kind does not match innermost context {top}",
                expected=top.node_kind,
                actual=node_kind
            )

        self._contexts.pop()

        if top.kind.is_if_branch():
            self._count_branch(top)

        if top.open_branch_violation is not None:
            self._flush(top.open_branch_violation)
            top.open_branch_violation = None

        if top.is_chain_root():
            self.chains.append(BranchChain(top.span, top.consecutive_branch_count))

        violation = self._open_depth_violation
        if (
            violation is not None
            and violation.owner_id == node_id
            and self.depth() <= self.config.max_depth
        ):
            self._flush(violation)
            self._open_depth_violation = None

        return top

    def check_finished(self) -> None:
        """走査終了時の不変条件を検証する。

        Raises:
            UnflushedViolationError: スタックが空でない、または未確定の違反がある場合
        """
        if self._contexts:
            raise UnflushedViolationError(
                f"traversal ended with {len(self._contexts)} open contexts, "
                f"innermost {self._contexts[-1]}"
            )
        if self._open_depth_violation is not None:
            raise UnflushedViolationError(
                f"unflushed depth violation at {self._open_depth_violation.primary_span}"
            )

    def _counted_contexts(self) -> Iterator[Context]:
        root_seen = False
        for ctx in self._contexts:
            if not root_seen and ctx.kind.is_item_root():
                root_seen = True
                continue
            if ctx.kind.counts_toward_depth(self.config):
                yield ctx

    def _record_depth(self, context: Context, depth: int) -> None:
        violation = self._open_depth_violation
        if violation is not None:
            if depth > violation.reason.count:
                violation.reason = violation.reason.with_count(depth)
            return

        # 閾値を超えたコンテキストが違反を所有し、その pop で深さは max_depth に戻る
        anchor = next(self._counted_contexts())
        outer_span = anchor.span if anchor is not context else None
        self._open_depth_violation = Violation(
            primary_span=context.span,
            outer_span=outer_span,
            kind=context.kind,
            reason=Reason.depth(depth),
            owner_id=context.node_id,
        )
        self._emit_trace(f"open depth violation [{depth}]", context.span)

    def _count_branch(self, branch: Context) -> None:
        root = self._find_chain_root(branch)
        root.consecutive_branch_count += 1
        if root.run_start_span is None:
            root.run_start_span = branch.span

        count = root.consecutive_branch_count
        self._emit_trace(f"inc branch #{count}", branch.span)

        if count <= self.config.max_consecutive_branches:
            return

        violation = root.open_branch_violation
        if violation is None:
            outer_span = root.run_start_span
            root.open_branch_violation = Violation(
                primary_span=branch.span,
                outer_span=outer_span if outer_span != branch.span else None,
                kind=branch.kind,
                reason=Reason.consecutive_branches(count),
                owner_id=root.node_id,
            )
        else:
            violation.reason = violation.reason.with_count(count)

    def _find_chain_root(self, branch: Context) -> Context:
        root_id = branch.chain_root_id
        if root_id is None:
            raise StackProtocolError(f"branch {branch} has no chain root")

        # else-if の振り分けコンテキストを外側へたどる
        for ctx in reversed(self._contexts):
            if ctx.node_id == root_id:
                return ctx
            if ctx.kind is ContextKind.IF and ctx.chain_root_id == root_id:
                continue
            break

        raise StackProtocolError(
            f"chain root of {branch} is not an enclosing context",
            expected=root_id,
            actual=self.top.node_id if self.top else None
        )

    def _flush(self, violation: Violation) -> None:
        self.violations.append(violation)
        self._emit_trace(f"flush {violation.reason.kind.value}", violation.primary_span)
        logger.debug(
            f"Violation recorded at {violation.primary_span}: "
            f"{violation.reason.kind.value}={violation.reason.count}"
        )

    def _emit_trace(self, message: str, span: Span) -> None:
        if self._trace is not None:
            self._trace(message, span)
