"""
チェッカーファクトリ：要素・テキストノードのチェッカー生成

Checkers.element() は ElementSpec の各フィールドを、Checkers.text_node() は
テキストを期待値とするチェッカーを生成する。生成されたチェッカーは
check_nodes() に渡すほか、単独で (node, message) を渡して呼び出せる。

ElementSpec の各フィールドは省略可能で、指定されたものだけが
_FIELD_VALIDATORS に定義された順序で検証される。

使用例::

    check_nodes(host.child_nodes, None, [
        Checkers.element(name="span", class_name="label", inner_text="Hi"),
        Checkers.text_node("tail"),
    ])
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from .. import asserts
from ..config import get_config
from ..dom.nodes import Element, Node, NodeNames
from ..dom.predicates import NodeFilter
from .nodes import Checker, check_nodes, message_prefix

logger = logging.getLogger(__name__)

BORDER_BOX_KEYS = frozenset({"left", "top", "right", "bottom", "width", "height"})


class CheckerContractError(TypeError):
    """チェッカーの指定方法そのものが誤っている場合のエラー。

    アサーション失敗ではなくテストコードの誤りを示す。
    """


# ---------------------------------------------------------------------------
# 期待値
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilteredNodes:
    """任意のフィルタで絞り込んだノード列に対する期待値。

    Attributes:
        filter: ノードを絞り込む述語
        checkers: 絞り込み後のノード 1 つにつき 1 つのチェッカー（None で 0 件を期待）
    """

    filter: NodeFilter
    checkers: Optional[tuple[Optional[Checker], ...]] = None

    def __post_init__(self) -> None:
        if self.checkers is not None:
            object.__setattr__(self, "checkers", tuple(self.checkers))


def _tuple_or_none(value: Optional[Sequence[Any]]) -> Optional[tuple[Any, ...]]:
    return None if value is None else tuple(value)


def _dict_or_none(value: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    return None if value is None else dict(value)


@dataclass(frozen=True)
class ElementSpec:
    """1 つの要素に対する構造的な期待値。

    全フィールドが省略可能で、None のフィールドは検証しない。

    Attributes:
        name: 小文字のタグ名
        class_name: className の完全一致
        has_class_names: 含まれているべきクラス名（他のクラスの有無は問わない）
        inner_html: 前後の空白を除いた innerHTML
        inner_text: 前後の空白を除いた innerText
        child_nodes: 表示中の子ノードに対するチェッカー列
        filtered_child_nodes: 任意のフィルタで絞り込んだ子ノードの期待値
        shadow_nodes: シャドウルート直下の表示中ノードに対するチェッカー列
        filtered_shadow_nodes: 任意のフィルタで絞り込んだシャドウルート直下ノードの期待値
        slots: slot 名 → チェッカー。None は「その slot に要素がない」ことを期待する
        properties: DOM プロパティ名 → 期待値（完全一致）
        computed_style: CSS プロパティ名 → 算出値
        border_box: left/top/right/bottom/width/height → 期待値（誤差 0.5 まで許容）
        checkers: 最後に順番に実行する任意のチェッカー
    """

    name: Optional[str] = None
    class_name: Optional[str] = None
    has_class_names: Optional[tuple[str, ...]] = None
    inner_html: Optional[str] = None
    inner_text: Optional[str] = None
    child_nodes: Optional[tuple[Optional[Checker], ...]] = None
    filtered_child_nodes: Optional[tuple[FilteredNodes, ...]] = None
    shadow_nodes: Optional[tuple[Optional[Checker], ...]] = None
    filtered_shadow_nodes: Optional[tuple[FilteredNodes, ...]] = None
    slots: Optional[dict[str, Optional[Checker]]] = None
    properties: Optional[dict[str, Any]] = None
    computed_style: Optional[dict[str, str]] = None
    border_box: Optional[dict[str, float]] = None
    checkers: Optional[tuple[Checker, ...]] = None

    def __post_init__(self) -> None:
        if isinstance(self.has_class_names, str):
            object.__setattr__(self, "has_class_names", (self.has_class_names,))
        for name in (
            "has_class_names", "child_nodes", "filtered_child_nodes",
            "shadow_nodes", "filtered_shadow_nodes",
        ):
            object.__setattr__(self, name, _tuple_or_none(getattr(self, name)))
        for name in ("slots", "properties", "computed_style", "border_box"):
            object.__setattr__(self, name, _dict_or_none(getattr(self, name)))

        if self.border_box is not None:
            unknown = sorted(set(self.border_box) - BORDER_BOX_KEYS)
            if unknown:
                raise ValueError(
                    f"borderBox に未知のキーが指定されました: {unknown} "
                    f"(指定可能: {sorted(BORDER_BOX_KEYS)})"
                )

        if self.checkers is not None:
            object.__setattr__(self, "checkers", _validate_checkers(self.checkers))


def _validate_checkers(checkers: Any) -> tuple[Checker, ...]:
    """checkers がチェッカー関数のリストであることを確認する。

    Raises:
        CheckerContractError: リストでない、または呼び出し可能でない要素を含む場合
    """
    if not isinstance(checkers, (list, tuple)):
        raise CheckerContractError(
            f"`checkers` はリストである必要がありますが、{type(checkers).__name__} でした"
        )
    for checker in checkers:
        if not callable(checker):
            raise CheckerContractError(
                f"`checkers` の各要素は関数である必要があります: {checker!r}"
            )
    return tuple(checkers)


# ---------------------------------------------------------------------------
# フィールドごとの検証
# ---------------------------------------------------------------------------

def _check_name(spec: ElementSpec, element: Element, prefix: str) -> None:
    asserts.equal(element.tag_name.lower(), spec.name, f"{prefix}要素のタグ名 (name) を検証")


def _check_class_name(spec: ElementSpec, element: Element, prefix: str) -> None:
    asserts.equal(
        element.class_name or "", spec.class_name or "",
        f"{prefix}要素の className を検証",
    )


def _check_has_class_names(spec: ElementSpec, element: Element, prefix: str) -> None:
    class_list = element.class_list
    for class_name in spec.has_class_names:
        asserts.is_true(
            class_name in class_list,
            f'{prefix}要素がクラス "{class_name}" を持つことを検証 (hasClassNames)',
        )


def _check_inner_html(spec: ElementSpec, element: Element, prefix: str) -> None:
    asserts.equal(
        element.inner_html.strip(), spec.inner_html,
        f"{prefix}要素の innerHTML を検証",
    )


def _check_inner_text(spec: ElementSpec, element: Element, prefix: str) -> None:
    asserts.equal(
        element.inner_text.strip(), spec.inner_text,
        f"{prefix}要素の innerText を検証",
    )


def _check_child_nodes(spec: ElementSpec, element: Element, prefix: str) -> None:
    check_nodes(element.child_nodes, None, spec.child_nodes, f"{prefix}子ノードを検証")


def _check_filtered_child_nodes(spec: ElementSpec, element: Element, prefix: str) -> None:
    for index, entry in enumerate(spec.filtered_child_nodes):
        check_nodes(
            element.child_nodes, entry.filter, entry.checkers,
            f"{prefix}フィルタ済みの子ノードを検証 (filter index: {index})",
        )


def _require_shadow_root(element: Element, prefix: str) -> None:
    asserts.is_true(
        element.shadow_root is not None,
        f"{prefix}要素がシャドウルートを持つことを検証",
    )


def _check_shadow_nodes(spec: ElementSpec, element: Element, prefix: str) -> None:
    _require_shadow_root(element, prefix)
    check_nodes(
        element.shadow_root.child_nodes, None, spec.shadow_nodes,
        f"{prefix}シャドウルートのノードを検証",
    )


def _check_filtered_shadow_nodes(spec: ElementSpec, element: Element, prefix: str) -> None:
    _require_shadow_root(element, prefix)
    for index, entry in enumerate(spec.filtered_shadow_nodes):
        check_nodes(
            element.shadow_root.child_nodes, entry.filter, entry.checkers,
            f"{prefix}フィルタ済みのシャドウルートのノードを検証 (filter index: {index})",
        )


def _check_slots(spec: ElementSpec, element: Element, prefix: str) -> None:
    for slot_name, checker in spec.slots.items():
        assigned = element.query_selector_all_by_attribute("slot", slot_name)
        if checker is None:
            asserts.equal(
                len(assigned), 0,
                f'{prefix}属性 slot="{slot_name}" を持つ要素がないことを検証',
            )
            continue
        asserts.equal(
            len(assigned), 1,
            f'{prefix}属性 slot="{slot_name}" を持つ要素がちょうど 1 つ存在することを検証',
        )
        checker(assigned[0], f'{prefix}属性 slot="{slot_name}" を持つ要素を検証')


def _check_properties(spec: ElementSpec, element: Element, prefix: str) -> None:
    for property_name, expected in spec.properties.items():
        asserts.equal(
            element.get_property(property_name), expected,
            f"{prefix}プロパティ '{property_name}' を検証",
        )


def _check_computed_style(spec: ElementSpec, element: Element, prefix: str) -> None:
    style = element.get_computed_style()
    for property_name, expected in spec.computed_style.items():
        asserts.equal(
            style.get(property_name), expected,
            f"{prefix}CSS プロパティ '{property_name}' を検証",
        )


def _check_border_box(spec: ElementSpec, element: Element, prefix: str) -> None:
    rect = element.get_bounding_client_rect()
    tolerance = get_config().border_box_tolerance
    for key, expected in spec.border_box.items():
        asserts.approximately(
            rect.get(key), expected, tolerance,
            f"{prefix}borderBox['{key}'] の値を検証",
        )


def _run_checkers(spec: ElementSpec, element: Element, prefix: str) -> None:
    for index, checker in enumerate(spec.checkers):
        checker(element, f"{prefix}チェッカー #{index} を実行")


# (フィールド名, 検証関数) の順序がそのまま検証順序になる
_FIELD_VALIDATORS: tuple[tuple[str, Callable[[ElementSpec, Element, str], None]], ...] = (
    ("name", _check_name),
    ("class_name", _check_class_name),
    ("has_class_names", _check_has_class_names),
    ("inner_html", _check_inner_html),
    ("inner_text", _check_inner_text),
    ("child_nodes", _check_child_nodes),
    ("filtered_child_nodes", _check_filtered_child_nodes),
    ("shadow_nodes", _check_shadow_nodes),
    ("filtered_shadow_nodes", _check_filtered_shadow_nodes),
    ("slots", _check_slots),
    ("properties", _check_properties),
    ("computed_style", _check_computed_style),
    ("border_box", _check_border_box),
    ("checkers", _run_checkers),
)


# ---------------------------------------------------------------------------
# チェッカー
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ElementChecker:
    """ElementSpec を満たす要素かどうかを検証するチェッカー。"""

    spec: ElementSpec

    def __call__(self, node: Node, message: str = "") -> None:
        prefix = message_prefix(message)
        asserts.is_ok(node, f"{prefix}ノード参照が渡されていることを検証")
        asserts.is_true(
            isinstance(node, Element),
            f"{prefix}ノードが Element であることを検証 (nodeName='{node.node_name}')",
        )
        for field_name, validate in _FIELD_VALIDATORS:
            if getattr(self.spec, field_name) is not None:
                validate(self.spec, node, prefix)


@dataclass(frozen=True)
class TextNodeChecker:
    """指定テキストを持つテキストノードかどうかを検証するチェッカー。"""

    text: str

    def __call__(self, node: Node, message: str = "") -> None:
        prefix = message_prefix(message)
        asserts.is_ok(node, f"{prefix}ノード参照が渡されていることを検証")
        asserts.equal(
            node.node_name, NodeNames.TEXT,
            f'{prefix}テキストノード（テキスト "{self.text}"）を期待しましたが、'
            f"nodeName='{node.node_name}' のノードでした",
        )
        asserts.equal(node.data.strip(), self.text, f"{prefix}テキストノードの内容を検証")


# ---------------------------------------------------------------------------
# ファクトリ
# ---------------------------------------------------------------------------

class Checkers:
    """チェッカーを生成するファクトリ関数の集合。

    各関数は引数のみに依存し、生成したチェッカーは複数のテストで再利用できる。
    独自のチェッカー種別は registry.CheckerRegistry に登録する。
    """

    @staticmethod
    def element(
        spec: Union[ElementSpec, Mapping[str, Any], None] = None, **fields: Any,
    ) -> ElementChecker:
        """ElementSpec を満たす要素を検証するチェッカーを生成する。

        Args:
            spec: ElementSpec またはそのフィールドの辞書
            **fields: ElementSpec のフィールド（spec と併用時は上書き）

        Returns:
            ElementChecker

        Raises:
            CheckerContractError: checkers の指定が不正な場合
        """
        if spec is None:
            spec = ElementSpec(**fields)
        elif isinstance(spec, ElementSpec):
            if fields:
                spec = dataclasses.replace(spec, **fields)
        else:
            spec = ElementSpec(**{**dict(spec), **fields})
        return ElementChecker(spec)

    @staticmethod
    def text_node(text: str) -> TextNodeChecker:
        """前後の空白を除いた内容が text に一致するテキストノードを検証するチェッカーを生成する。"""
        return TextNodeChecker(text)
