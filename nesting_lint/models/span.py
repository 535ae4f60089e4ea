"""ソース位置情報モデル。"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True, order=True)
class Span:
    """ソースコード上の範囲。

    開始位置・終了位置はともに1始まりの (行, 列)。終了位置は範囲の直後を指す。
    比較演算はファイル名、開始位置、終了位置の順で行う。
    """
    file_path: str
    start_line: int
    start_column: int
    end_line: int
    end_column: int

    @property
    def start(self) -> Tuple[int, int]:
        return (self.start_line, self.start_column)

    @property
    def end(self) -> Tuple[int, int]:
        return (self.end_line, self.end_column)

    def is_synthetic(self) -> bool:
        """コンパイラが生成した（ファイルを持たない）範囲かを確認する。"""
        return not self.file_path or self.start_line <= 0

    def is_empty(self) -> bool:
        """長さゼロの範囲かを確認する。"""
        return self.start == self.end

    def contains(self, other: "Span") -> bool:
        """他の範囲を完全に含むかを確認する。

        Args:
            other: 判定対象の範囲

        Returns:
            同一ファイルかつ other が self の内側にある場合True
        """
        if self.file_path != other.file_path:
            return False
        return self.start <= other.start and other.end <= self.end

    def contains_position(self, line: int, column: int) -> bool:
        """位置が範囲内（両端を含む）にあるかを確認する。"""
        return self.start <= (line, column) <= self.end

    def __str__(self) -> str:
        return f"{self.file_path}:{self.start_line}:{self.start_column}"


@dataclass(frozen=True)
class LocationRange:
    """行単位の位置範囲。デバッグトレースの絞り込みに使用する。"""
    file_path: str
    start_line: int
    end_line: int

    @classmethod
    def from_span(cls, span: Span) -> "LocationRange":
        return cls(span.file_path, span.start_line, span.end_line)

    @classmethod
    def from_dict(cls, data: dict) -> "LocationRange":
        """設定辞書から生成する。

        Args:
            data: file, start_line, end_line キーを含む辞書

        Returns:
            LocationRangeインスタンス

        Raises:
            ValueError: file キーがない、または行番号が整数でない場合
        """
        if not data.get("file"):
            raise ValueError(f"debug_location_filter requires a file: {data!r}")
        try:
            start_line = int(data.get("start_line", 1))
            end_line = int(data.get("end_line", start_line))
        except (TypeError, ValueError):
            raise ValueError(f"debug_location_filter lines must be integers: {data!r}")
        return cls(file_path=str(data["file"]), start_line=start_line, end_line=end_line)

    def intersects(self, other: "LocationRange") -> bool:
        """行範囲が重なるかを確認する。"""
        if self.file_path != other.file_path:
            return False
        return self.start_line <= other.end_line and other.start_line <= self.end_line

    def matches(self, span: Optional[Span]) -> bool:
        """範囲が Span と重なるかを確認する。"""
        if span is None:
            return False
        return self.intersects(LocationRange.from_span(span))

    def to_dict(self) -> dict:
        return {
            "file": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }
