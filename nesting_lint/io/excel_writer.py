"""診断結果のExcel出力モジュール。"""

from typing import Dict, List
from pathlib import Path
from datetime import datetime
import logging

from openpyxl import Workbook, load_workbook
from openpyxl.styles import PatternFill, Font, Alignment, Border, Side

from ..engine.walker import UnitResult
from ..models.context import ReasonKind

logger = logging.getLogger(__name__)

DIAGNOSTICS_SHEET = "Diagnostics"
SUMMARY_SHEET = "Summary"


def _thin_border() -> Border:
    return Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin")
    )


def _solid_fill(color: str) -> PatternFill:
    return PatternFill(start_color=color, end_color=color, fill_type="solid")


class ExcelWriter:
    """診断結果をExcelファイルに書き込む。"""

    # 理由ごとの色（RGB hex、#なし）
    REASON_COLORS: Dict[ReasonKind, str] = {
        ReasonKind.DEPTH: "FFC7CE",                 # 赤 - ネストが深い
        ReasonKind.CONSECUTIVE_BRANCHES: "FFEB9C",  # 黄 - 分岐が多い
    }

    FAILED_COLOR = "D9D9D9"

    # (ヘッダー, 列幅)
    DIAGNOSTIC_COLUMNS = [
        ("ファイル", 40),
        ("行", 8),
        ("列", 8),
        ("理由", 22),
        ("観測値", 10),
        ("メッセージ", 60),
        ("外側のコンテキスト", 40),
        ("対処方法", 50),
    ]

    def __init__(self, output_file: str):
        """Excelライターを初期化する。

        Args:
            output_file: 出力Excelファイルのパス
        """
        self.output_file = Path(output_file)

    def write_diagnostics(self, results: List[UnitResult]) -> None:
        """診断をDiagnosticsシートに書き込む。

        出力ファイルは新規作成（既存の場合は上書き）する。

        Args:
            results: 解析単位ごとの結果
        """
        wb = Workbook()
        ws = wb.active
        ws.title = DIAGNOSTICS_SHEET

        self._add_headers(ws)

        row = 2
        for result in results:
            for diagnostic in result.diagnostics:
                self._write_diagnostic_row(ws, row, diagnostic)
                row += 1

        ws.freeze_panes = "A2"
        self._adjust_column_widths(ws)

        self.output_file.parent.mkdir(parents=True, exist_ok=True)
        wb.save(self.output_file)
        logger.info(f"{row - 2} diagnostics written to {self.output_file}")

    def _add_headers(self, ws) -> None:
        """ヘッダー行を追加する。

        Args:
            ws: ワークシートオブジェクト
        """
        white_font = Font(bold=True, color="FFFFFF")
        header_alignment = Alignment(horizontal="center", vertical="center")
        header_fill = _solid_fill("4472C4")
        thin_border = _thin_border()

        for i, (header, _) in enumerate(self.DIAGNOSTIC_COLUMNS, 1):
            cell = ws.cell(row=1, column=i)
            cell.value = header
            cell.font = white_font
            cell.alignment = header_alignment
            cell.fill = header_fill
            cell.border = thin_border

    def _write_diagnostic_row(self, ws, row_num: int, diagnostic) -> None:
        """1行分の診断を書き込む。

        Args:
            ws: ワークシートオブジェクト
            row_num: 書き込む行番号
            diagnostic: 書き込む診断
        """
        thin_border = _thin_border()
        span = diagnostic.primary_span

        outer = ""
        if diagnostic.outer_span is not None:
            outer = f"{diagnostic.outer_label} ({diagnostic.outer_span})"

        values = [
            span.file_path,
            span.start_line,
            span.start_column,
            diagnostic.reason.kind.value,
            diagnostic.reason.count,
            diagnostic.message,
            outer,
            diagnostic.help,
        ]

        for col, value in enumerate(values, 1):
            cell = ws.cell(row=row_num, column=col)
            cell.value = value
            cell.border = thin_border
            if isinstance(value, int):
                cell.alignment = Alignment(horizontal="right")
            else:
                cell.alignment = Alignment(wrap_text=True, vertical="top")

        # 理由列を色分け
        ws.cell(row=row_num, column=4).fill = _solid_fill(
            self.REASON_COLORS[diagnostic.reason.kind]
        )

    def _adjust_column_widths(self, ws) -> None:
        for i, (_, width) in enumerate(self.DIAGNOSTIC_COLUMNS, 1):
            col_letter = ws.cell(row=1, column=i).column_letter
            ws.column_dimensions[col_letter].width = width

    def write_summary(self, results: List[UnitResult]) -> None:
        """統計情報を含むサマリーシートを追加する。

        `write_diagnostics` の後に呼び出す。

        Args:
            results: 解析単位ごとの結果
        """
        wb = load_workbook(self.output_file)

        # 既存のSummaryシートがあれば削除
        if SUMMARY_SHEET in wb.sheetnames:
            del wb[SUMMARY_SHEET]

        ws = wb.create_sheet(SUMMARY_SHEET)

        # 統計を計算
        counts: Dict[ReasonKind, int] = {kind: 0 for kind in ReasonKind}
        for result in results:
            for diagnostic in result.diagnostics:
                counts[diagnostic.reason.kind] += 1
        total = sum(counts.values())
        failed = [result for result in results if result.failed]

        ws["A1"] = "ネスト解析サマリー"
        ws["A1"].font = Font(bold=True, size=14)
        ws.merge_cells("A1:C1")

        ws["A2"] = f"生成日時: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"
        ws.merge_cells("A2:C2")

        ws["A3"] = f"解析ファイル数: {len(results)}（失敗: {len(failed)}）"
        ws.merge_cells("A3:C3")

        # 統計テーブル
        headers = ["理由", "件数", "割合"]
        header_font = Font(bold=True)
        thin_border = _thin_border()

        for i, header in enumerate(headers, 1):
            cell = ws.cell(row=5, column=i)
            cell.value = header
            cell.font = header_font
            cell.border = thin_border
            cell.alignment = Alignment(horizontal="center")

        row = 6
        for reason_kind, count in counts.items():
            cell_type = ws.cell(row=row, column=1)
            cell_type.value = reason_kind.value
            cell_type.fill = _solid_fill(self.REASON_COLORS[reason_kind])
            cell_type.border = thin_border

            cell_count = ws.cell(row=row, column=2)
            cell_count.value = count
            cell_count.alignment = Alignment(horizontal="right")
            cell_count.border = thin_border

            cell_pct = ws.cell(row=row, column=3)
            cell_pct.value = f"{count / total * 100:.1f}%" if total > 0 else "0%"
            cell_pct.alignment = Alignment(horizontal="right")
            cell_pct.border = thin_border

            row += 1

        # 合計行
        for col, value in enumerate(["合計", total, "100%" if total > 0 else "0%"], 1):
            cell = ws.cell(row=row, column=col)
            cell.value = value
            cell.font = Font(bold=True)
            cell.border = thin_border
            if col > 1:
                cell.alignment = Alignment(horizontal="right")

        # 解析に失敗したファイル
        if failed:
            row += 2
            ws.cell(row=row, column=1).value = "解析失敗"
            ws.cell(row=row, column=1).font = header_font
            for result in failed:
                row += 1
                cell_path = ws.cell(row=row, column=1)
                cell_path.value = result.path
                cell_path.fill = _solid_fill(self.FAILED_COLOR)
                ws.cell(row=row, column=2).value = result.error

        ws.column_dimensions["A"].width = 40
        ws.column_dimensions["B"].width = 10
        ws.column_dimensions["C"].width = 10

        wb.save(self.output_file)
        logger.info(f"Summary sheet added to {self.output_file}")
