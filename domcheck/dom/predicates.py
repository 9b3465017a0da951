"""
ノード述語：ノード検証の対象を絞り込むフィルタ

check_nodes() はフィルタを通過したノードだけを検証対象とする。
デフォルトのフィルタ is_displayed_node は空白のみのテキストノード、
コメントノード、display: none の要素を除外する。
"""

from __future__ import annotations

from typing import Callable

from .nodes import Element, Node, NodeNames, TextNode

NodeFilter = Callable[[Node], bool]


class NodePredicates:
    """Node を受け取り bool を返す述語の集合。"""

    @staticmethod
    def is_whitespace_only_text_node(node: Node) -> bool:
        return (
            node.node_name == NodeNames.TEXT
            and getattr(node, "data", "").strip() == ""
        )

    @staticmethod
    def is_comment_node(node: Node) -> bool:
        return node.node_name == NodeNames.COMMENT

    @staticmethod
    def is_display_none_element(node: Node) -> bool:
        return (
            isinstance(node, Element)
            and node.get_computed_style().get("display") == "none"
        )

    @staticmethod
    def is_displayed_node(node: Node) -> bool:
        return (
            not NodePredicates.is_whitespace_only_text_node(node)
            and not NodePredicates.is_comment_node(node)
            and not NodePredicates.is_display_none_element(node)
        )

    @staticmethod
    def is_element(node: Node) -> bool:
        return isinstance(node, Element)

    @staticmethod
    def is_text_node(node: Node) -> bool:
        return isinstance(node, TextNode)

    @staticmethod
    def any_node(node: Node) -> bool:
        return True


# 期待値ファイルの filter キーで指定できる名前付きフィルタ
NAMED_FILTERS: dict[str, NodeFilter] = {
    "displayed": NodePredicates.is_displayed_node,
    "all": NodePredicates.any_node,
    "elements": NodePredicates.is_element,
    "text": NodePredicates.is_text_node,
    "comments": NodePredicates.is_comment_node,
}


def get_named_filter(name: str) -> NodeFilter:
    """名前付きフィルタを取得する。

    Raises:
        KeyError: 未知のフィルタ名の場合
    """
    if name not in NAMED_FILTERS:
        available = ", ".join(sorted(NAMED_FILTERS))
        raise KeyError(f"フィルタ '{name}' は定義されていません。利用可能: [{available}]")
    return NAMED_FILTERS[name]
