"""if / else-if / else チェーンの分類。

`if a {A} else if b {B} else {C}` は3つの独立した if ではなく、3つの分岐を持つ
1つの判断として扱う。分岐の役割は親の条件ノードを訪問した時点で確定し、
子ノードに入るときに参照する。
"""

from dataclasses import dataclass
from typing import Dict, Optional
import logging

from ..models.context import ContextKind
from ..models.span import Span
from ..models.syntax import ConditionalBranches, NodeId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BranchAssignment:
    """子ノードに割り当てた分岐の役割。

    role が IF の場合は else-if の継続となる条件ノードを表す。
    """
    role: ContextKind
    chain_root_id: NodeId
    root_span: Span

    @property
    def is_continuation(self) -> bool:
        return self.role is ContextKind.IF


@dataclass(frozen=True)
class ConditionalClass:
    """条件ノードの分類結果。"""
    chain_root_id: Optional[NodeId]
    root_span: Span

    @property
    def is_chain_root(self) -> bool:
        return self.chain_root_id is None


class IfElseChainClassifier:
    """条件ノードの分岐を Then / ElseIf / Else に分類する。"""

    def __init__(self):
        self._pending: Dict[NodeId, BranchAssignment] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def classify_conditional(
        self,
        node_id: NodeId,
        span: Span,
        branches: Optional[ConditionalBranches]
    ) -> ConditionalClass:
        """条件ノードを分類し、その分岐の役割を登録する。

        else から到達した条件ノードは既存チェーンの継続、それ以外は新しい
        チェーンの根になる。

        Args:
            node_id: 条件ノードのID
            span: 条件ノードの範囲
            branches: then / else の子ノード情報

        Returns:
            分類結果
        """
        assignment = self._pending.pop(node_id, None)

        if assignment is not None and assignment.is_continuation:
            result = ConditionalClass(assignment.chain_root_id, assignment.root_span)
            root_id = assignment.chain_root_id
            then_role = ContextKind.ELSE_IF
        else:
            if assignment is not None:
                logger.debug(
                    f"Conditional {node_id!r} was registered as {assignment.role}, "
                    f"starting a new chain"
                )
            result = ConditionalClass(None, span)
            root_id = node_id
            then_role = ContextKind.THEN

        if branches is None:
            return result

        self._register(branches.then_id, then_role, root_id, result.root_span)
        if branches.else_id is not None:
            else_role = ContextKind.IF if branches.else_is_conditional else ContextKind.ELSE
            self._register(branches.else_id, else_role, root_id, result.root_span)

        return result

    def classify_block(self, node_id: NodeId) -> Optional[BranchAssignment]:
        """ブロックに割り当てられた分岐の役割を取り出す。

        Returns:
            役割が THEN / ELSE_IF / ELSE の割り当て。分岐でなければNone
        """
        assignment = self._pending.pop(node_id, None)
        if assignment is None:
            return None
        if assignment.is_continuation:
            # else-if として登録されたがブロックとして入った
            return BranchAssignment(ContextKind.ELSE, assignment.chain_root_id, assignment.root_span)
        return assignment

    def discard(self, node_id: NodeId) -> None:
        """スキップされた子ノードの割り当てを破棄する。"""
        self._pending.pop(node_id, None)

    def reset(self) -> None:
        self._pending.clear()

    def _register(
        self,
        child_id: NodeId,
        role: ContextKind,
        root_id: NodeId,
        root_span: Span
    ) -> None:
        if child_id in self._pending:
            logger.warning(f"Branch {child_id!r} is already classified, overwriting")
        self._pending[child_id] = BranchAssignment(role, root_id, root_span)
