"""構文木の走査と解析単位ごとの実行。"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import logging

from ..config import LintConfig
from ..models.diagnostic import Diagnostic
from ..models.syntax import SyntaxNode
from .analyzer import NestingAnalyzer, SourceText
from .errors import AnalysisError
from .macro_filter import ExpansionProvider

logger = logging.getLogger(__name__)


@dataclass
class UnitResult:
    """1つの解析単位の結果。"""
    path: str
    diagnostics: List[Diagnostic] = field(default_factory=list)
    error: Optional[str] = None
    chain_count: int = 0

    @property
    def failed(self) -> bool:
        return self.error is not None


def walk(node: SyntaxNode, analyzer: NestingAnalyzer) -> None:
    """ノードを深さ優先でたどり、解析器のフックを呼び出す。

    Args:
        node: 起点のノード
        analyzer: 呼び出し先の解析器
    """
    analyzer.on_enter(node.node_id, node.kind, node.span, node.branches)
    for child in node.children:
        walk(child, analyzer)
    analyzer.on_exit(node.node_id, node.kind)


def analyze_unit(
    path: str,
    roots: Iterable[SyntaxNode],
    config: LintConfig,
    expansion_provider: Optional[ExpansionProvider] = None,
    source_text: Optional[SourceText] = None
) -> UnitResult:
    """1つの解析単位（翻訳単位）を解析する。

    解析中に内部不整合が見つかった場合は、その単位の診断を破棄して
    エラーとして返す。

    Args:
        path: 解析単位のファイルパス
        roots: 解析単位の最上位ノード
        config: 解析設定
        expansion_provider: マクロ展開の祖先情報
        source_text: デバッグトレース用のソース取得

    Returns:
        UnitResultインスタンス
    """
    analyzer = NestingAnalyzer(
        config,
        expansion_provider=expansion_provider,
        source_text=source_text
    )

    try:
        for root in roots:
            walk(root, analyzer)
        diagnostics = analyzer.emit_all()
    except AnalysisError as e:
        logger.error(f"Analysis aborted for {path}: {e}")
        return UnitResult(path=path, error=str(e))

    logger.debug(f"{path}: {len(diagnostics)} diagnostics")
    return UnitResult(
        path=path,
        diagnostics=diagnostics,
        chain_count=len(analyzer.chains)
    )
