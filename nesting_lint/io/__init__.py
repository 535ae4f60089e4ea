"""Excel出力モジュール。"""

from .excel_writer import ExcelWriter

__all__ = ["ExcelWriter"]
