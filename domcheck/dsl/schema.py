"""
期待値ファイルのスキーマ定義

YAML で記述したノード構造の期待値を Pydantic v2 モデルで表現し、
to_checker() で実行時のチェッカーに変換する。

ノードの期待値は次のいずれか:
  - {text: "..."}                    テキストノード
  - {element: {...}}                 要素（フィールドは ElementFields 参照）
  - {checker: 名前, args: {...}}     CheckerRegistry に登録された独自チェッカー
  - null                             スキップ（ノードを消費しない）

記述例::

    title: ラベル付きボタン
    url: http://localhost:8000/button.html
    selector: "#root"
    nodes:
      - element:
          name: my-button
          shadowNodes:
            - element: {name: span, className: label, innerText: OK}
          slots:
            icon: null
      - text: 末尾のテキスト
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..dom.predicates import NAMED_FILTERS, NodeFilter, get_named_filter
from ..matching.checkers import Checkers, ElementSpec, FilteredNodes
from ..matching.nodes import Checker
from ..matching.registry import CheckerRegistry, default_registry

BorderBoxKey = Literal["left", "top", "right", "bottom", "width", "height"]


def _validate_filter_name(value: str) -> str:
    if value not in NAMED_FILTERS:
        available = ", ".join(sorted(NAMED_FILTERS))
        raise ValueError(f"未知のフィルタ名です: {value}（利用可能: {available}）")
    return value


def _to_checkers(
    entries: Optional[list[Optional["NodeExpectation"]]], registry: CheckerRegistry,
) -> Optional[list[Optional[Checker]]]:
    if entries is None:
        return None
    return [None if entry is None else entry.to_checker(registry) for entry in entries]


def _iter_fields(
    entries: Optional[Iterable[Optional["NodeExpectation"]]],
) -> Iterator["ElementFields"]:
    """期待値の列に含まれる ElementFields を入れ子も含めて列挙する。"""
    for entry in entries or ():
        if isinstance(entry, ElementExpectation):
            yield from entry.element.iter_fields()


def _unique(names: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(names))


# ---------------------------------------------------------------------------
# フィルタ付きノード列
# ---------------------------------------------------------------------------

class FilteredNodesModel(BaseModel):
    """名前付きフィルタで絞り込んだノード列の期待値。"""

    model_config = ConfigDict(extra="forbid")

    filter: str = Field(default="displayed", description="NAMED_FILTERS のフィルタ名")
    nodes: Optional[list[Optional[NodeExpectation]]] = Field(
        default=None, description="絞り込み後のノードの期待値（省略時は 0 件を期待）",
    )

    @field_validator("filter")
    @classmethod
    def validate_filter(cls, v: str) -> str:
        """filter が NAMED_FILTERS に定義された名前であることを検証する。"""
        return _validate_filter_name(v)

    def to_filtered_nodes(self, registry: CheckerRegistry) -> FilteredNodes:
        return FilteredNodes(
            filter=get_named_filter(self.filter),
            checkers=_to_checkers(self.nodes, registry),
        )


# ---------------------------------------------------------------------------
# 要素
# ---------------------------------------------------------------------------

class ElementFields(BaseModel):
    """要素の期待値。全フィールド省略可能で、指定されたものだけ検証する。"""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, description="小文字のタグ名")
    className: Optional[str] = Field(default=None, description="className の完全一致")
    hasClassNames: Optional[list[str]] = Field(default=None, description="含まれるべきクラス名")
    innerHTML: Optional[str] = Field(default=None, description="前後の空白を除いた innerHTML")
    innerText: Optional[str] = Field(default=None, description="前後の空白を除いた innerText")
    childNodes: Optional[list[Optional[NodeExpectation]]] = None
    filteredChildNodes: Optional[list[FilteredNodesModel]] = None
    shadowNodes: Optional[list[Optional[NodeExpectation]]] = None
    filteredShadowNodes: Optional[list[FilteredNodesModel]] = None
    slots: Optional[dict[str, Optional[NodeExpectation]]] = Field(
        default=None, description="slot 名 → 期待値（null は要素がないことを期待）",
    )
    properties: Optional[dict[str, Any]] = None
    computedStyle: Optional[dict[str, str]] = None
    borderBox: Optional[dict[BorderBoxKey, float]] = None
    checkers: Optional[list[NodeExpectation]] = Field(
        default=None, description="同じ要素に追加で適用する期待値",
    )

    def to_spec(self, registry: CheckerRegistry) -> ElementSpec:
        """ElementSpec に変換する。"""
        return ElementSpec(
            name=self.name,
            class_name=self.className,
            has_class_names=self.hasClassNames,
            inner_html=self.innerHTML,
            inner_text=self.innerText,
            child_nodes=_to_checkers(self.childNodes, registry),
            filtered_child_nodes=(
                None if self.filteredChildNodes is None
                else [entry.to_filtered_nodes(registry) for entry in self.filteredChildNodes]
            ),
            shadow_nodes=_to_checkers(self.shadowNodes, registry),
            filtered_shadow_nodes=(
                None if self.filteredShadowNodes is None
                else [entry.to_filtered_nodes(registry) for entry in self.filteredShadowNodes]
            ),
            slots=(
                None if self.slots is None
                else {
                    slot: None if entry is None else entry.to_checker(registry)
                    for slot, entry in self.slots.items()
                }
            ),
            properties=self.properties,
            computed_style=self.computedStyle,
            border_box=self.borderBox,
            checkers=(
                None if self.checkers is None
                else [entry.to_checker(registry) for entry in self.checkers]
            ),
        )

    def iter_fields(self) -> Iterator[ElementFields]:
        """自身と、子孫ノード・slot・追加チェッカーに含まれる ElementFields を列挙する。"""
        yield self
        yield from _iter_fields(self.childNodes)
        yield from _iter_fields(self.shadowNodes)
        for filtered in (self.filteredChildNodes or []) + (self.filteredShadowNodes or []):
            yield from _iter_fields(filtered.nodes)
        yield from _iter_fields((self.slots or {}).values())
        yield from _iter_fields(self.checkers)


class ElementExpectation(BaseModel):
    """{element: {...}} 形式の期待値。"""

    model_config = ConfigDict(extra="forbid")

    element: ElementFields

    def to_checker(self, registry: CheckerRegistry) -> Checker:
        return Checkers.element(self.element.to_spec(registry))


class TextNodeExpectation(BaseModel):
    """{text: "..."} 形式の期待値。"""

    model_config = ConfigDict(extra="forbid")

    text: str

    def to_checker(self, registry: CheckerRegistry) -> Checker:
        return Checkers.text_node(self.text)


class CustomExpectation(BaseModel):
    """{checker: 名前, args: {...}} 形式の期待値。"""

    model_config = ConfigDict(extra="forbid")

    checker: str = Field(..., description="CheckerRegistry に登録されたファクトリ名")
    args: dict[str, Any] = Field(default_factory=dict, description="ファクトリのキーワード引数")

    def to_checker(self, registry: CheckerRegistry) -> Checker:
        return registry.create(self.checker, **self.args)


NodeExpectation = Union[ElementExpectation, TextNodeExpectation, CustomExpectation]
"""ノード 1 つ分の期待値の Union 型。"""

FilteredNodesModel.model_rebuild()
ElementFields.model_rebuild()
ElementExpectation.model_rebuild()


# ---------------------------------------------------------------------------
# 期待値ドキュメント
# ---------------------------------------------------------------------------

class ExpectationDocument(BaseModel):
    """期待値ファイル全体。

    Attributes:
        title: 期待値の名前
        url: 検証するページの URL（CLI の --url で上書き可）
        selector: 検証対象要素の CSS セレクタ。その子ノードが検証される
        shadow: True の場合は対象要素のシャドウルート直下のノードを検証する
        filter: ノードの絞り込みに使うフィルタ名
        timeout: 一致するまで待機する時間（ミリ秒）。省略時は設定値
        nodes: ノードの期待値（省略時は 0 件を期待）
    """

    model_config = ConfigDict(extra="forbid")

    title: str
    url: Optional[str] = None
    selector: str = "body"
    shadow: bool = False
    filter: str = "displayed"
    timeout: Optional[int] = Field(default=None, ge=0)
    nodes: Optional[list[Optional[NodeExpectation]]] = None

    @field_validator("filter")
    @classmethod
    def validate_filter(cls, v: str) -> str:
        """filter が NAMED_FILTERS に定義された名前であることを検証する。"""
        return _validate_filter_name(v)

    def node_filter(self) -> NodeFilter:
        return get_named_filter(self.filter)

    def to_checkers(
        self, registry: Optional[CheckerRegistry] = None,
    ) -> Optional[list[Optional[Checker]]]:
        """nodes をチェッカー列に変換する。

        Args:
            registry: checker エントリの解決に使うレジストリ。省略時は default_registry()
        """
        return _to_checkers(self.nodes, registry or default_registry())

    def style_names(self) -> list[str]:
        """computedStyle で参照される CSS プロパティ名を出現順（重複なし）で返す。

        スナップショットで取得する算出スタイルの指定に使う。
        checker エントリの args は対象外。
        """
        return _unique(
            name
            for fields in _iter_fields(self.nodes)
            for name in (fields.computedStyle or {})
        )

    def property_names(self) -> list[str]:
        """properties で参照される DOM プロパティ名を出現順（重複なし）で返す。"""
        return _unique(
            name
            for fields in _iter_fields(self.nodes)
            for name in (fields.properties or {})
        )
