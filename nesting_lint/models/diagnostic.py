"""ネスト解析の診断結果モデル。"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .context import HELP_MESSAGE, Reason, ReasonKind, Violation
from .span import Span

if TYPE_CHECKING:
    from ..config import LintConfig

LINT_NAME = "nesting_depth"


@dataclass(frozen=True)
class Diagnostic:
    """ホストに渡す1件の診断。"""
    primary_span: Span
    outer_span: Optional[Span]
    outer_label: Optional[str]
    message: str
    help: str
    reason: Reason
    lint_name: str = LINT_NAME

    @classmethod
    def from_violation(cls, violation: Violation, config: "LintConfig") -> "Diagnostic":
        """違反レコードから診断を生成する。

        Args:
            violation: 確定済みの違反
            config: メッセージ生成に使う解析設定

        Returns:
            Diagnosticインスタンス
        """
        reason = violation.reason
        outer_label = reason.outer_context_label() if violation.outer_span else None
        return cls(
            primary_span=violation.primary_span,
            outer_span=violation.outer_span,
            outer_label=outer_label,
            message=reason.message(config),
            help=HELP_MESSAGE,
            reason=reason,
        )

    @property
    def is_depth(self) -> bool:
        return self.reason.kind is ReasonKind.DEPTH

    def to_dict(self) -> dict:
        """JSON出力用の辞書に変換する。"""
        data = {
            "lint": self.lint_name,
            "file": self.primary_span.file_path,
            "line": self.primary_span.start_line,
            "column": self.primary_span.start_column,
            "end_line": self.primary_span.end_line,
            "end_column": self.primary_span.end_column,
            "reason": self.reason.kind.value,
            "count": self.reason.count,
            "message": self.message,
            "help": self.help,
            "outer": None,
        }
        if self.outer_span is not None:
            data["outer"] = {
                "label": self.outer_label,
                "file": self.outer_span.file_path,
                "line": self.outer_span.start_line,
                "column": self.outer_span.start_column,
            }
        return data

    def to_gcc_format(self) -> str:
        """GCC形式の診断文字列: file:line:col: warning: message [lint]"""
        lines = [f"{self.primary_span}: warning: {self.message} [{self.lint_name}]"]
        if self.outer_span is not None:
            lines.append(f"{self.outer_span}: note: {self.outer_label}")
        lines.append(f"{self.primary_span}: help: {self.help}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return f"{self.primary_span}: {self.message}"
