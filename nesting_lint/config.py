"""設定管理モジュール。"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any, FrozenSet
from pathlib import Path
import logging
import sys

import yaml

from .models.span import LocationRange

logger = logging.getLogger(__name__)

# デフォルトの最大ネスト深さ
DEFAULT_MAX_DEPTH = 3

# デフォルトの連続if-else分岐の最大数
DEFAULT_MAX_CONSECUTIVE_BRANCHES = 3

# `python -X dev` で起動した場合はデバッグトレースを既定で有効化
DEFAULT_DEBUG = bool(sys.flags.dev_mode)

# 解析対象とするソースファイルの拡張子
C_EXTENSIONS = (".c",)
CXX_EXTENSIONS = (".cpp", ".cc", ".cxx", ".c++")

LINT_SECTION = "nesting_depth"


@dataclass(frozen=True)
class LintConfig:
    """ネスト深さ解析の設定。1回の解析中は変更しない。"""
    max_depth: int = DEFAULT_MAX_DEPTH
    max_consecutive_branches: int = DEFAULT_MAX_CONSECUTIVE_BRANCHES
    ignore_closures: bool = True
    ignore_macros: FrozenSet[str] = frozenset()
    debug: bool = DEFAULT_DEBUG
    debug_location_filter: Optional[LocationRange] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LintConfig":
        """辞書から解析設定を作成する。

        未知のキーは警告を出して無視する。

        Args:
            data: nesting_depth セクションの辞書

        Returns:
            LintConfigインスタンス
        """
        data = dict(data or {})
        known = {
            "max_depth",
            "max_consecutive_branches",
            "ignore_closures",
            "ignore_macros",
            "debug",
            "debug_location_filter",
        }
        for key in sorted(set(data) - known):
            logger.warning(f"Unknown {LINT_SECTION} option ignored: {key}")

        location_filter = data.get("debug_location_filter")
        if isinstance(location_filter, dict):
            location_filter = LocationRange.from_dict(location_filter)

        ignore_macros = data.get("ignore_macros") or ()
        if isinstance(ignore_macros, str):
            ignore_macros = [ignore_macros]

        return cls(
            max_depth=data.get("max_depth", DEFAULT_MAX_DEPTH),
            max_consecutive_branches=data.get(
                "max_consecutive_branches",
                DEFAULT_MAX_CONSECUTIVE_BRANCHES
            ),
            ignore_closures=data.get("ignore_closures", True),
            ignore_macros=frozenset(ignore_macros),
            debug=data.get("debug", DEFAULT_DEBUG),
            debug_location_filter=location_filter,
        )

    def validate(self) -> List[str]:
        """設定値を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = []
        for name in ("max_depth", "max_consecutive_branches"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                errors.append(f"{name} must be a non-negative integer: {value!r}")
        if not isinstance(self.ignore_closures, bool):
            errors.append(f"ignore_closures must be a boolean: {self.ignore_closures!r}")
        for name in self.ignore_macros:
            if not isinstance(name, str) or not name:
                errors.append(f"ignore_macros entries must be non-empty strings: {name!r}")
        if not (
            self.debug_location_filter is None
            or isinstance(self.debug_location_filter, LocationRange)
        ):
            errors.append(
                f"debug_location_filter must be a mapping: {self.debug_location_filter!r}"
            )
        return errors

    def to_dict(self) -> dict:
        data: Dict[str, Any] = {
            "max_depth": self.max_depth,
            "max_consecutive_branches": self.max_consecutive_branches,
            "ignore_closures": self.ignore_closures,
            "ignore_macros": sorted(self.ignore_macros),
            "debug": self.debug,
        }
        if self.debug_location_filter:
            data["debug_location_filter"] = self.debug_location_filter.to_dict()
        return data


@dataclass
class Config:
    """アプリケーション設定。"""

    # C/C++パース用インクルードパス
    include_paths: List[str] = field(default_factory=list)

    # 追加のコンパイラ引数
    compiler_args: List[str] = field(default_factory=list)

    # 解析対象のソースディレクトリ
    source_directories: List[str] = field(default_factory=list)

    # C++ファイルに使用する言語規格
    language_standard: str = "c++17"

    # ネスト深さ解析の設定
    lint: LintConfig = field(default_factory=LintConfig)

    # Excelレポートの出力先
    report_file: Optional[str] = None

    # ロギング設定
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_yaml(cls, file_path: str) -> "Config":
        """YAMLファイルから設定を読み込む。

        Args:
            file_path: YAML設定ファイルのパス

        Returns:
            Configインスタンス
        """
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        config = cls.from_dict(data)
        logger.info(f"Configuration loaded from {file_path}")
        return config

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        """辞書から設定を作成する。

        Args:
            data: 設定辞書

        Returns:
            Configインスタンス
        """
        config = cls()

        # パス設定
        config.include_paths = list(data.get("include_paths") or [])
        config.compiler_args = list(data.get("compiler_args") or [])
        config.source_directories = list(data.get("source_directories") or [])
        config.language_standard = data.get(
            "language_standard",
            config.language_standard
        )

        # 解析設定
        config.lint = LintConfig.from_dict(data.get(LINT_SECTION))

        # 出力
        config.report_file = data.get("report_file")

        # ロギング
        config.log_level = data.get("log_level", config.log_level)
        config.log_file = data.get("log_file")

        return config

    def validate(self) -> List[str]:
        """設定を検証する。

        Returns:
            検証エラーのリスト（有効な場合は空）
        """
        errors = list(self.lint.validate())

        # パスの存在を検証
        for path in self.include_paths:
            if not Path(path).exists():
                logger.warning(f"Include path does not exist: {path}")

        for path in self.source_directories:
            if not Path(path).exists():
                errors.append(f"Source directory does not exist: {path}")

        if self.report_file and not str(self.report_file).endswith(".xlsx"):
            errors.append(f"report_file must be an .xlsx path: {self.report_file}")

        return errors

    def to_dict(self) -> dict:
        """設定を辞書に変換する。

        Returns:
            辞書形式の設定
        """
        data: Dict[str, Any] = {
            "include_paths": self.include_paths,
            "compiler_args": self.compiler_args,
            "source_directories": self.source_directories,
            "language_standard": self.language_standard,
            LINT_SECTION: self.lint.to_dict(),
            "log_level": self.log_level,
        }
        if self.report_file:
            data["report_file"] = self.report_file
        if self.log_file:
            data["log_file"] = self.log_file
        return data

    def get_source_files(self) -> List[str]:
        """ソースディレクトリから全ソースファイルを取得する。

        Returns:
            ソースファイルパスのリスト
        """
        source_files = []

        for source_dir in self.source_directories:
            path = Path(source_dir)
            if path.exists():
                source_files.extend(collect_source_files(path))

        logger.debug(f"Found {len(source_files)} source files")
        return source_files

    def save_yaml(self, file_path: str) -> None:
        """設定をYAMLファイルに保存。

        Args:
            file_path: 保存先パス
        """
        output_path = Path(file_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.to_dict(),
                f,
                default_flow_style=False,
                allow_unicode=True,
                sort_keys=False
            )

        logger.info(f"Configuration saved to {file_path}")


def collect_source_files(path: Path) -> List[str]:
    """ディレクトリ配下のC/C++ソースファイルを列挙する。

    Args:
        path: ファイルまたはディレクトリ

    Returns:
        ソートされたソースファイルパスのリスト
    """
    if path.is_file():
        return [str(path)]

    extensions = C_EXTENSIONS + CXX_EXTENSIONS
    return sorted(
        str(f) for f in path.rglob("*")
        if f.is_file() and f.suffix.lower() in extensions
    )
