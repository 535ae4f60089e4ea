"""libclangを使用したC/C++ソースコード解析のラッパー。"""

from typing import List, Optional, Dict
from pathlib import Path
import os
import logging
import threading

from ..config import C_EXTENSIONS

logger = logging.getLogger(__name__)

# 自動検出に失敗した場合に探すLLVMのインストール先
_LIBCLANG_SEARCH_PATHS = [
    r"C:\Program Files\LLVM\bin",
    r"C:\Program Files (x86)\LLVM\bin",
    "/usr/lib/llvm/lib",
    "/usr/local/opt/llvm/lib",
]

_LIBCLANG_NAMES = ("libclang.dll", "libclang.so", "libclang.dylib")


class ClangParseError(Exception):
    """Clangパース時のエラー。"""
    pass


class ClangAnalyzer:
    """libclangを使用したC/C++解析のメインクラス。

    ネスト解析には関数本体が必要なため、常に本体を含めてパースする。
    TranslationUnitはファイルごとにキャッシュする。
    """

    def __init__(
        self,
        include_paths: Optional[List[str]] = None,
        additional_args: Optional[List[str]] = None,
        library_path: Optional[str] = None,
        language_standard: Optional[str] = "c++17"
    ):
        """Clangアナライザーを初期化する。

        Args:
            include_paths: インクルードディレクトリのリスト
            additional_args: 追加のコンパイラ引数
            library_path: libclangライブラリのパス（任意、未指定時は自動検出）
            language_standard: C++ファイルに指定する -std の値
        """
        self._setup_libclang(library_path)

        import clang.cindex as ci
        self._ci = ci

        self.include_paths = include_paths or []
        self.additional_args = additional_args or []
        self.language_standard = language_standard
        self.index = ci.Index.create()

        # スレッドセーフなTranslationUnitキャッシュ
        self._translation_units: Dict[str, ci.TranslationUnit] = {}
        self._cache_lock = threading.Lock()

        logger.info(f"ClangAnalyzer initialized with {len(self.include_paths)} include paths")

    def _setup_libclang(self, library_path: Optional[str] = None) -> None:
        """libclangライブラリパスを設定する。

        Args:
            library_path: libclangへの明示的なパス（任意）
        """
        import clang.cindex as ci

        if library_path:
            if not ci.Config.loaded:
                ci.Config.set_library_path(library_path)
            return

        # pip install libclang でインストールされたライブラリを優先
        try:
            ci.Index.create()
            logger.debug("libclang loaded successfully from pip package")
        except Exception as e:
            for path in _LIBCLANG_SEARCH_PATHS:
                if any((Path(path) / name).exists() for name in _LIBCLANG_NAMES):
                    ci.Config.set_library_path(path)
                    logger.info(f"Using libclang from: {path}")
                    return

            raise ClangParseError(
                f"Failed to load libclang: {e}. "
                "Please install libclang with 'pip install libclang' or install LLVM."
            )

    @staticmethod
    def is_c_source(file_path: str) -> bool:
        return Path(file_path).suffix.lower() in C_EXTENSIONS

    def _build_compiler_args(self, file_path: str) -> List[str]:
        """パース用のコンパイラ引数を構築する。

        Args:
            file_path: ソースファイルのパス

        Returns:
            コンパイラ引数のリスト
        """
        if self.is_c_source(file_path):
            args = ["-x", "c"]
        else:
            args = ["-x", "c++"]
            if self.language_standard:
                args.append(f"-std={self.language_standard}")

        args.append("-Wno-pragma-once-outside-header")  # pragma警告を抑制

        # インクルードパスを追加
        for inc_path in self.include_paths:
            args.extend(["-I", inc_path])

        # 追加の引数を追加
        args.extend(self.additional_args)

        return args

    def _parse_options(self) -> int:
        # マクロ展開の位置を取得するため前処理レコードを含める
        return self._ci.TranslationUnit.PARSE_DETAILED_PROCESSING_RECORD

    def get_translation_unit(self, file_path: str, force_reparse: bool = False):
        """ファイルのTranslationUnitを取得する。

        同じファイルの再パースを避けるためにキャッシュを使用する。

        Args:
            file_path: ソースファイルのパス
            force_reparse: キャッシュがあっても強制的に再パース

        Returns:
            clang.cindex.TranslationUnit

        Raises:
            ClangParseError: パースに失敗した場合
        """
        abs_path = os.path.abspath(file_path)

        with self._cache_lock:
            if not force_reparse and abs_path in self._translation_units:
                return self._translation_units[abs_path]

        args = self._build_compiler_args(abs_path)

        try:
            tu = self.index.parse(abs_path, args=args, options=self._parse_options())
        except self._ci.TranslationUnitLoadError as e:
            raise ClangParseError(f"Failed to parse {abs_path}: {e}")

        if tu is None:
            raise ClangParseError(f"Failed to parse {abs_path}: returned None")

        self._log_diagnostics(tu, abs_path)

        with self._cache_lock:
            self._translation_units[abs_path] = tu

        return tu

    def parse_string(self, source_code: str, filename: str = "temp.cpp"):
        """文字列からソースコードをパースする。

        Args:
            source_code: C/C++ソースコード
            filename: ソースの仮想ファイル名（拡張子で言語を判定）

        Returns:
            clang.cindex.TranslationUnit

        Raises:
            ClangParseError: パースに失敗した場合
        """
        args = self._build_compiler_args(filename)

        try:
            tu = self.index.parse(
                filename,
                args=args,
                unsaved_files=[(filename, source_code)],
                options=self._parse_options()
            )
        except self._ci.TranslationUnitLoadError as e:
            raise ClangParseError(f"Failed to parse source string: {e}")

        self._log_diagnostics(tu, filename)
        return tu

    def _log_diagnostics(self, tu, path: str) -> None:
        for diag in tu.diagnostics:
            if diag.severity >= self._ci.Diagnostic.Error:
                logger.warning(f"Parse error in {path}: {diag.spelling}")

    def clear_cache(self) -> None:
        """TranslationUnitキャッシュをクリアする。"""
        with self._cache_lock:
            self._translation_units.clear()
        logger.debug("TranslationUnit cache cleared")

    @property
    def ci(self):
        """clang.cindexモジュールを取得する。"""
        return self._ci
