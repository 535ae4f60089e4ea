"""ネスト深さ解析ツールのメインエントリーポイント。"""

import argparse
import dataclasses
import json
import sys
from pathlib import Path
from typing import List, Optional
from dataclasses import dataclass
import logging

import yaml

from .config import Config, collect_source_files
from .io.excel_writer import ExcelWriter
from .engine.walker import UnitResult, analyze_unit
from .frontend.clang_analyzer import ClangAnalyzer, ClangParseError
from .frontend.tree_builder import ClangExpansionProvider, ClangSourceText, SyntaxTreeBuilder
from .models.context import ReasonKind
from .utils.logger import setup_logging, ProgressLogger

logger = logging.getLogger(__name__)

# 終了コード
EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_ERROR = 2


@dataclass
class ProcessingStats:
    """処理統計情報。"""
    total: int = 0
    analyzed: int = 0
    depth: int = 0
    consecutive_branches: int = 0
    errors: int = 0

    @property
    def diagnostics(self) -> int:
        return self.depth + self.consecutive_branches


class NestingLintRunner:
    """ネスト深さ解析のメインクラス。"""

    def __init__(self, config: Config):
        """解析ランナーを初期化する。

        Args:
            config: アプリケーション設定
        """
        self.config = config
        self.stats = ProcessingStats()

        self._init_components()

    def _init_components(self) -> None:
        """すべてのコンポーネントを初期化する。"""
        # Clang解析器
        self.clang_analyzer = ClangAnalyzer(
            include_paths=self.config.include_paths,
            additional_args=self.config.compiler_args,
            language_standard=self.config.language_standard
        )

        # 構文木ビルダー
        self.tree_builder = SyntaxTreeBuilder(self.clang_analyzer)

        logger.info("All components initialized")

    def process(self, source_files: List[str]) -> List[UnitResult]:
        """ソースファイルを解析する。

        Args:
            source_files: 解析するファイルのリスト

        Returns:
            ファイルごとの解析結果
        """
        self.stats.total = len(source_files)
        logger.info(f"Processing started: {self.stats.total} files")

        results: List[UnitResult] = []
        progress = ProgressLogger(self.stats.total, logger, log_interval=10)

        for file_path in source_files:
            result = self.analyze_file(file_path)
            results.append(result)
            self._update_stats(result)
            progress.update(file_path)

        progress.complete("Analysis complete")

        if self.config.report_file:
            writer = ExcelWriter(self.config.report_file)
            writer.write_diagnostics(results)
            writer.write_summary(results)

        self._log_statistics()
        return results

    def analyze_file(self, file_path: str) -> UnitResult:
        """1つのファイルを解析する。

        Args:
            file_path: ソースファイルのパス

        Returns:
            UnitResultインスタンス（パース失敗時はerrorを設定）
        """
        logger.debug(f"Analyzing {file_path}")

        try:
            tu = self.clang_analyzer.get_translation_unit(file_path)
        except ClangParseError as e:
            logger.error(f"Error processing {file_path}: {e}")
            return UnitResult(path=file_path, error=str(e))

        lint = self.config.lint
        roots = self.tree_builder.build(tu, tu.spelling)
        provider = ClangExpansionProvider(tu) if lint.ignore_macros else None
        source_text = ClangSourceText() if lint.debug else None

        result = analyze_unit(file_path, roots, lint, provider, source_text)

        # 解析単位ごとに状態を破棄する
        self.clang_analyzer.clear_cache()
        return result

    def _update_stats(self, result: UnitResult) -> None:
        if result.failed:
            self.stats.errors += 1
            return

        self.stats.analyzed += 1
        for diagnostic in result.diagnostics:
            if diagnostic.reason.kind is ReasonKind.DEPTH:
                self.stats.depth += 1
            else:
                self.stats.consecutive_branches += 1

    def _log_statistics(self) -> None:
        """処理統計をログ出力する。"""
        logger.info("=" * 50)
        logger.info("Processing Statistics:")
        logger.info(f"  Total files: {self.stats.total}")
        logger.info(f"  Analyzed: {self.stats.analyzed}")
        logger.info(f"  Nesting depth diagnostics: {self.stats.depth}")
        logger.info(f"  Consecutive branch diagnostics: {self.stats.consecutive_branches}")
        logger.info(f"  Errors: {self.stats.errors}")
        logger.info("=" * 50)


def format_results(results: List[UnitResult], output_format: str = "text") -> str:
    """解析結果を出力用の文字列に整形する。

    Args:
        results: 解析結果のリスト
        output_format: "text"（GCC形式）または "json"

    Returns:
        整形済みの文字列
    """
    if output_format == "json":
        data = {
            "diagnostics": [
                diagnostic.to_dict()
                for result in results
                for diagnostic in result.diagnostics
            ],
            "errors": [
                {"file": result.path, "error": result.error}
                for result in results if result.failed
            ],
        }
        return json.dumps(data, indent=2, ensure_ascii=False)

    lines = [
        diagnostic.to_gcc_format()
        for result in results
        for diagnostic in result.diagnostics
    ]
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数のパーサーを構築する。"""
    parser = argparse.ArgumentParser(
        prog="nesting-lint",
        description="C/C++ソースのネスト深さと連続if-else分岐を検査するツール"
    )
    parser.add_argument(
        "paths",
        nargs="*",
        help="解析するファイルまたはディレクトリ（省略時は設定のsource_directories）"
    )
    parser.add_argument(
        "-c", "--config",
        help="設定ファイルパス（YAML）"
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        help="許容する最大ネスト深さ"
    )
    parser.add_argument(
        "--max-consecutive-branches",
        type=int,
        help="許容する連続if-else分岐の最大数"
    )
    parser.add_argument(
        "--no-ignore-closures",
        action="store_true",
        help="ラムダ式もネスト深さに数える"
    )
    parser.add_argument(
        "--ignore-macro",
        action="append",
        default=[],
        metavar="NAME",
        help="展開を解析から除外するマクロ名（複数指定可）"
    )
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="診断の出力形式"
    )
    parser.add_argument(
        "--report",
        metavar="XLSX",
        help="Excelレポートの出力先"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="詳細ログを有効にする"
    )
    parser.add_argument(
        "--init-config",
        metavar="CONFIG",
        help="デフォルト設定ファイルを生成して終了する"
    )
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """設定ファイルを読み込み、コマンドライン引数で上書きする。

    Args:
        args: パース済みの引数

    Returns:
        Configインスタンス
    """
    config = Config.from_yaml(args.config) if args.config else Config()

    overrides = {}
    if args.max_depth is not None:
        overrides["max_depth"] = args.max_depth
    if args.max_consecutive_branches is not None:
        overrides["max_consecutive_branches"] = args.max_consecutive_branches
    if args.no_ignore_closures:
        overrides["ignore_closures"] = False
    if args.ignore_macro:
        overrides["ignore_macros"] = config.lint.ignore_macros | frozenset(args.ignore_macro)
    if overrides:
        config.lint = dataclasses.replace(config.lint, **overrides)

    if args.report:
        config.report_file = args.report

    # 詳細ログが指定された場合はログレベルを上書き
    if args.verbose:
        config.log_level = "DEBUG"

    return config


def main(argv: Optional[List[str]] = None) -> int:
    """メインエントリーポイント。

    Returns:
        終了コード（0: 診断なし, 1: 診断あり, 2: エラー）
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.init_config:
        setup_logging(level="INFO")
        Config().save_yaml(args.init_config)
        print(f"設定ファイルを生成しました: {args.init_config}")
        return EXIT_OK

    if args.config and not Path(args.config).exists():
        print(f"Error: 設定ファイルが見つかりません: {args.config}", file=sys.stderr)
        return EXIT_ERROR

    try:
        config = load_config(args)
    except (ValueError, yaml.YAMLError) as e:
        print(f"Error: 設定ファイルが不正です: {e}", file=sys.stderr)
        return EXIT_ERROR

    # ロギングをセットアップ
    setup_logging(level=config.log_level, log_file=config.log_file, trace=config.lint.debug)

    # 設定を検証
    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(f"Configuration error: {error}")
        return EXIT_ERROR

    # 解析対象ファイルを収集
    if args.paths:
        source_files = []
        for path in args.paths:
            if not Path(path).exists():
                logger.error(f"Path not found: {path}")
                return EXIT_ERROR
            source_files.extend(collect_source_files(Path(path)))
    else:
        source_files = config.get_source_files()

    if not source_files:
        logger.error("No source files to analyze")
        return EXIT_ERROR

    try:
        runner = NestingLintRunner(config)
    except ClangParseError as e:
        logger.error(f"Fatal error: {e}")
        return EXIT_ERROR

    results = runner.process(source_files)

    output = format_results(results, args.format)
    if output:
        print(output)

    if runner.stats.analyzed == 0:
        return EXIT_ERROR
    if runner.stats.diagnostics > 0:
        return EXIT_DIAGNOSTICS
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
