"""
期待値ファイルパーサー：YAML の読み込み・書き出し・検証

ruamel.yaml を使用して YAML ファイルを読み込み、
Pydantic の ExpectationDocument モデルとの相互変換を行う。
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..matching.registry import CheckerRegistry, default_registry
from .schema import ExpectationDocument

_EMPTY_MESSAGE = "YAML が空です"


def _problem_position(error: YAMLError) -> tuple[Optional[int], Optional[int]]:
    """YAML エラーの発生位置（1 始まりの行・列）を返す。不明な場合は (None, None)。"""
    mark = getattr(error, "problem_mark", None)
    if mark is None:
        return None, None
    return mark.line + 1, mark.column + 1


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class DslValidationError:
    """期待値ファイルのスキーマ検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: YAML ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# ExpectationParser 本体
# ---------------------------------------------------------------------------

class ExpectationParser:
    """期待値ファイルの読み込み・書き出し・検証を担当するパーサー。"""

    def __init__(self) -> None:
        """ruamel.yaml インスタンスを初期化する。"""
        self._yaml = YAML()
        self._yaml.preserve_quotes = True
        self._yaml.default_flow_style = False

    # ----- load -----

    def load(self, path: Path) -> ExpectationDocument:
        """YAML ファイルを読み込み、ExpectationDocument に変換する。

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: YAML 構文エラーまたはスキーマ検証エラーの場合
        """
        return self.loads(self._read(Path(path)))

    def loads(self, text: str) -> ExpectationDocument:
        """YAML 文字列を ExpectationDocument に変換する。

        Raises:
            ValueError: YAML 構文エラー（行・列付き）、空の YAML、
                またはスキーマ検証エラーの場合
        """
        try:
            data = self._yaml.load(text)
        except YAMLError as e:
            line, column = _problem_position(e)
            position = f" (行 {line}, 列 {column})" if line is not None else ""
            raise ValueError(f"YAML 構文エラー{position}: {e}") from e
        if data is None:
            raise ValueError(_EMPTY_MESSAGE)
        try:
            return ExpectationDocument.model_validate(self._to_plain(data))
        except PydanticValidationError as e:
            raise ValueError(f"スキーマ検証エラー: {e}") from e

    # ----- dump -----

    def dump(self, document: ExpectationDocument, path: Path) -> None:
        """ExpectationDocument を YAML ファイルに書き出す。

        明示的に設定されたフィールドのみ出力するため、
        slots の null（要素がないことを期待）も保持される。
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            self._yaml.dump(self._to_data(document), f)

    def dumps(self, document: ExpectationDocument) -> str:
        """ExpectationDocument を YAML 文字列に変換する。"""
        stream = io.StringIO()
        self._yaml.dump(self._to_data(document), stream)
        return stream.getvalue()

    # ----- validate -----

    def validate(
        self, path: Path, registry: Optional[CheckerRegistry] = None,
    ) -> list[DslValidationError]:
        """期待値ファイルを検証し、違反箇所を報告する。

        YAML 構文とスキーマに加えて、各ノードの期待値がチェッカーに変換できるか
        （checker 名がレジストリに登録されているか、args がファクトリに合うか）も
        確認する。

        Args:
            path: 検証する YAML ファイルのパス
            registry: checker エントリの解決に使うレジストリ。省略時は default_registry()

        Returns:
            検出されたバリデーションエラーのリスト（エラーがなければ空）
        """
        path = Path(path)
        try:
            text = self._read(path)
        except FileNotFoundError as e:
            return [DslValidationError(message=str(e), location="file")]

        try:
            data = self._yaml.load(text)
        except YAMLError as e:
            line, _ = _problem_position(e)
            return [DslValidationError(
                message=f"YAML 構文エラー: {e}", location="yaml", line=line,
            )]
        if data is None:
            return [DslValidationError(message="YAML ファイルが空です", location="file")]

        try:
            document = ExpectationDocument.model_validate(self._to_plain(data))
        except PydanticValidationError as e:
            return [
                DslValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=" -> ".join(str(part) for part in err.get("loc", ())) or "unknown",
                )
                for err in e.errors()
            ]

        return self._checker_errors(document, registry or default_registry())

    @staticmethod
    def _checker_errors(
        document: ExpectationDocument, registry: CheckerRegistry,
    ) -> list[DslValidationError]:
        """チェッカーに変換できないノードの期待値を、ノードの位置付きで列挙する。"""
        errors: list[DslValidationError] = []
        for index, entry in enumerate(document.nodes or []):
            if entry is None:
                continue
            try:
                entry.to_checker(registry)
            except (KeyError, TypeError, ValueError) as e:
                # KeyError の str() は引用符付きになるため args から取り出す
                message = e.args[0] if isinstance(e, KeyError) and e.args else str(e)
                errors.append(DslValidationError(message=message, location=f"nodes -> {index}"))
        return errors

    # ----- ユーティリティ -----

    @staticmethod
    def _read(path: Path) -> str:
        if not path.exists():
            raise FileNotFoundError(f"YAML ファイルが見つかりません: {path}")
        return path.read_text(encoding="utf-8")

    @staticmethod
    def _to_data(document: ExpectationDocument) -> dict[str, Any]:
        return document.model_dump(mode="python", exclude_unset=True)

    def _to_plain(self, data: object) -> object:
        """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
        if isinstance(data, dict):
            return {key: self._to_plain(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._to_plain(item) for item in data]
        return data
