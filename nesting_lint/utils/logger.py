"""ロギング設定モジュール。"""

import logging
import sys
from pathlib import Path
from typing import Optional

from ..engine.analyzer import TRACE_LOGGER_NAME

# デバッグトレース用のフォーマット（インデントを崩さないよう本文のみ）
TRACE_FORMAT = "%(message)s"


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    trace: bool = False
) -> logging.Logger:
    """ロギング設定をセットアップする。

    Args:
        level: ログレベル（DEBUG, INFO, WARNING, ERROR, CRITICAL）
        log_file: ログファイルへのパス（省略可）
        format_string: カスタムフォーマット文字列（省略可）
        trace: スタック操作のデバッグトレースを出力するかどうか

    Returns:
        ルートロガー
    """
    # デフォルトフォーマット
    if format_string is None:
        format_string = (
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    # レベル文字列をロギングレベルに変換
    log_level = getattr(logging, level.upper(), logging.INFO)

    formatter = logging.Formatter(format_string)

    # ルートロガーを設定
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # 既存のハンドラーを削除
    root_logger.handlers.clear()

    # 診断結果は標準出力に出すため、ログは標準エラーへ出力する
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # ファイルハンドラー（指定された場合）
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(
            log_path,
            encoding="utf-8"
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    _setup_trace_logger(trace)

    return root_logger


def _setup_trace_logger(enabled: bool) -> None:
    """デバッグトレース用ロガーを設定する。

    Args:
        enabled: トレースを出力するかどうか
    """
    trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
    trace_logger.handlers.clear()

    if not enabled:
        trace_logger.propagate = True
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(TRACE_FORMAT))
    trace_logger.addHandler(handler)
    trace_logger.setLevel(logging.DEBUG)
    trace_logger.propagate = False


class ProgressLogger:
    """進捗ログ出力用のヘルパークラス。"""

    def __init__(
        self,
        total: int,
        logger: Optional[logging.Logger] = None,
        log_interval: int = 10
    ):
        """進捗ロガーを初期化する。

        Args:
            total: 解析単位の総数
            logger: 使用するロガー
            log_interval: 進捗更新の間隔
        """
        self.total = total
        self.current = 0
        self.logger = logger or logging.getLogger(__name__)
        self.log_interval = log_interval

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return self.current / self.total * 100

    def update(self, message: Optional[str] = None) -> None:
        """進捗を更新する。

        Args:
            message: 含めるメッセージ（省略可）
        """
        self.current += 1

        if self.current % self.log_interval == 0 or self.current == self.total:
            msg = f"Progress: {self.current}/{self.total} ({self.percent:.1f}%)"
            if message:
                msg += f" - {message}"
            self.logger.info(msg)

    def complete(self, message: str = "Complete") -> None:
        """進捗を完了としてマークする。

        Args:
            message: 完了メッセージ
        """
        self.logger.info(f"{message}: {self.current}/{self.total} files analyzed")
