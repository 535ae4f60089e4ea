"""解析エンジンの例外定義。"""

from typing import Any, Optional


class AnalysisError(Exception):
    """解析単位を中断すべき内部不整合。"""
    pass


class StackProtocolError(AnalysisError):
    """enter/exit の呼び出し順がコンテキストスタックと一致しない。"""

    def __init__(
        self,
        message: str,
        expected: Optional[Any] = None,
        actual: Optional[Any] = None
    ):
        """例外を初期化する。

        Args:
            message: エラー内容
            expected: スタック先頭にあるべき値（ノードIDや種別）
            actual: 実際に渡された値
        """
        if expected is not None or actual is not None:
            message = f"{message} (expected {expected!r}, got {actual!r})"
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class UnflushedViolationError(AnalysisError):
    """走査終了時に確定していない違反が残っている。"""
    pass


class ExpansionWalkError(Exception):
    """マクロ展開の祖先をたどれない（展開グラフが壊れている）。"""
    pass
