"""
チェッカーレジストリ：チェッカーファクトリの登録・検索・一覧

Checkers の標準ファクトリ（element / textNode）と、テストモジュールが追加する
独自ファクトリを同一のインターフェースで管理する。
期待値ファイル（dsl）の `checker:` エントリはこのレジストリから解決される。

共有オブジェクトへの暗黙のマージは行わず、拡張は register() で明示的に行う。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .checkers import Checkers
from .nodes import Checker

logger = logging.getLogger(__name__)

CheckerFactory = Callable[..., Checker]


@dataclass
class CheckerInfo:
    """チェッカーファクトリのメタ情報。

    Attributes:
        name: ファクトリ名（期待値ファイルの checker キーで使用）
        description: 説明文
    """

    name: str
    description: str


class CheckerRegistry:
    """チェッカーファクトリの登録・検索・一覧を管理するレジストリ。

    使用例::

        registry = default_registry()
        registry.register("badge", make_badge_checker,
                          info=CheckerInfo("badge", "バッジ要素"))
        checker = registry.create("badge", label="New")
    """

    def __init__(self) -> None:
        """空のレジストリを初期化する。"""
        self._factories: dict[str, CheckerFactory] = {}
        self._info: dict[str, CheckerInfo] = {}

    def register(
        self,
        name: str,
        factory: CheckerFactory,
        /,
        *,
        info: Optional[CheckerInfo] = None,
    ) -> None:
        """チェッカーファクトリを登録する。

        同名のファクトリが既に登録されている場合は上書きする（警告を出力）。

        Raises:
            TypeError: factory が呼び出し可能でない場合
        """
        if not callable(factory):
            raise TypeError(
                f"factory は呼び出し可能である必要があります: {type(factory).__name__}"
            )

        if name in self._factories:
            logger.warning("チェッカーファクトリ '%s' を上書きします", name)

        self._factories[name] = factory
        if info is not None:
            self._info[name] = info
        elif name not in self._info:
            self._info[name] = CheckerInfo(name=name, description=f"{name} チェッカー")

        logger.debug("チェッカーファクトリ '%s' を登録しました", name)

    def get(self, name: str, /) -> CheckerFactory:
        """名前でファクトリを取得する。

        Raises:
            KeyError: 指定名のファクトリが未登録の場合
        """
        if name not in self._factories:
            registered = ", ".join(sorted(self._factories.keys()))
            raise KeyError(
                f"チェッカー '{name}' は登録されていません。"
                f"登録済みチェッカー: [{registered}]"
            )
        return self._factories[name]

    def create(self, name: str, /, *args: Any, **kwargs: Any) -> Checker:
        """名前で解決したファクトリからチェッカーを生成する。

        name は位置専用引数のため、ファクトリのキーワード引数 name（要素名）と衝突しない。
        """
        return self.get(name)(*args, **kwargs)

    def has(self, name: str, /) -> bool:
        return name in self._factories

    def list_all(self) -> list[CheckerInfo]:
        """登録済みファクトリのメタ情報を名前順で返す。"""
        return sorted(self._info.values(), key=lambda info: info.name)

    @property
    def names(self) -> list[str]:
        return sorted(self._factories.keys())


def default_registry() -> CheckerRegistry:
    """標準ファクトリ（element / textNode）を登録したレジストリを生成する。"""
    registry = CheckerRegistry()
    registry.register(
        "element",
        Checkers.element,
        info=CheckerInfo("element", "ElementSpec を満たす要素"),
    )
    registry.register(
        "textNode",
        Checkers.text_node,
        info=CheckerInfo("textNode", "指定テキストを持つテキストノード"),
    )
    return registry
