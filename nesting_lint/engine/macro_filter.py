"""マクロ展開の除外フィルタ。"""

from typing import Dict, FrozenSet, Iterable, List
import logging

from ..models.span import Span
from ..models.syntax import ExpansionFrame, NodeId
from .errors import ExpansionWalkError

logger = logging.getLogger(__name__)

# 展開の祖先をたどる上限（これを超える場合は展開グラフが壊れているとみなす）
MAX_EXPANSION_DEPTH = 128


class ExpansionProvider:
    """フロントエンドが提供するマクロ展開の祖先情報。"""

    def expansion_ancestry(self, span: Span) -> Iterable[ExpansionFrame]:
        """範囲を生成したマクロ呼び出しを内側から外側の順に返す。

        Args:
            span: 対象の範囲

        Returns:
            ExpansionFrameのイテラブル（マクロ展開でなければ空）

        Raises:
            ExpansionWalkError: 展開グラフをたどれない場合
        """
        raise NotImplementedError


class NoExpansionProvider(ExpansionProvider):
    """マクロ展開情報を持たないフロントエンド用。"""

    def expansion_ancestry(self, span: Span) -> Iterable[ExpansionFrame]:
        return ()


class MacroExclusionFilter:
    """無視対象マクロの展開に由来するノードを判定する。

    判定結果はノードIDごとにキャッシュし、除外したマクロ呼び出し位置は
    以降の包含判定のために記録する。
    """

    def __init__(self, ignore_macros: FrozenSet[str], provider: ExpansionProvider = None):
        """フィルタを初期化する。

        Args:
            ignore_macros: 展開を無視するマクロ名
            provider: 展開の祖先情報（未指定時は展開なしとして扱う）
        """
        self.ignore_macros = frozenset(ignore_macros)
        self.provider = provider or NoExpansionProvider()
        self._decisions: Dict[NodeId, bool] = {}
        self._call_sites: List[Span] = []

    @property
    def call_sites(self) -> List[Span]:
        return list(self._call_sites)

    def is_excluded(self, node_id: NodeId, span: Span) -> bool:
        """ノードを解析から除外するかを判定する。

        Args:
            node_id: ノードID
            span: ノードの範囲

        Returns:
            除外する場合True
        """
        if not self.ignore_macros:
            return False

        cached = self._decisions.get(node_id)
        if cached is not None:
            return cached

        excluded = self._in_recorded_call_site(span) or self._walk_ancestry(span)
        self._decisions[node_id] = excluded
        return excluded

    def reset(self) -> None:
        self._decisions.clear()
        self._call_sites.clear()

    def _in_recorded_call_site(self, span: Span) -> bool:
        return any(site.contains(span) for site in self._call_sites)

    def _walk_ancestry(self, span: Span) -> bool:
        try:
            for depth, frame in enumerate(self.provider.expansion_ancestry(span), 1):
                if depth > MAX_EXPANSION_DEPTH:
                    logger.warning(
                        f"Expansion ancestry of {span} exceeds {MAX_EXPANSION_DEPTH} frames, "
                        f"treating as not excluded"
                    )
                    return False
                if frame.macro_name in self.ignore_macros:
                    self._call_sites.append(frame.call_site)
                    logger.debug(f"Excluding {span} (expanded from {frame.macro_name} at {frame.call_site})")
                    return True
        except ExpansionWalkError as e:
            logger.warning(f"Failed to walk expansion ancestry of {span}: {e}")
            return False

        return False
