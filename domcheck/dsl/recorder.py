"""
期待値レコーダー：取得したノードツリーから期待値ドキュメントを生成

capture_snapshot() や parse_fragment() で得た Element の子ノードを走査し、
現在の DOM 構造をそのまま期待値とする ExpectationDocument を組み立てる。
生成した期待値を ExpectationParser.dump() で書き出して手直しする使い方を想定する。

主な機能:
  - 表示中のノード（displayed フィルタ）のみを記録
  - 要素はタグ名・className・子ノード構造、シャドウルートのノードを記録
  - テキストノードは前後の空白を除いた内容を記録
"""

from __future__ import annotations

import logging
from typing import Optional

from ..dom.nodes import Element, Node, TextNode
from ..dom.predicates import NodePredicates
from .schema import (
    ElementExpectation,
    ElementFields,
    ExpectationDocument,
    FilteredNodesModel,
    NodeExpectation,
    TextNodeExpectation,
)

logger = logging.getLogger(__name__)

_RECORD_FILTER = "displayed"


def _displayed(nodes: list[Node]) -> list[Node]:
    return [node for node in nodes if NodePredicates.is_displayed_node(node)]


def _record_node(node: Node, max_depth: Optional[int], depth: int) -> Optional[NodeExpectation]:
    if isinstance(node, TextNode):
        return TextNodeExpectation(text=node.data.strip())
    if not isinstance(node, Element):
        logger.debug("記録対象外のノードをスキップしました: %s", node.node_name)
        return None

    fields: dict = {"name": node.local_name}
    if node.class_name:
        fields["className"] = node.class_name

    if max_depth is None or depth < max_depth:
        children = _displayed(node.child_nodes)
        if children:
            fields["filteredChildNodes"] = [FilteredNodesModel(
                filter=_RECORD_FILTER,
                nodes=[_record_node(child, max_depth, depth + 1) for child in children],
            )]
        if node.shadow_root is not None:
            shadow_children = _displayed(node.shadow_root.child_nodes)
            fields["filteredShadowNodes"] = [FilteredNodesModel(
                filter=_RECORD_FILTER,
                nodes=[_record_node(child, max_depth, depth + 1) for child in shadow_children],
            )]

    return ElementExpectation(element=ElementFields(**fields))


def expectation_from_node(
    root: Element,
    title: str,
    *,
    selector: str = "body",
    url: Optional[str] = None,
    shadow: bool = False,
    max_depth: Optional[int] = None,
) -> ExpectationDocument:
    """Element の子ノードから期待値ドキュメントを生成する。

    Args:
        root: 記録する要素（その子ノードが期待値になる）
        title: 期待値の名前
        selector: ドキュメントに記録する対象要素のセレクタ
        url: ドキュメントに記録するページの URL
        shadow: True の場合は root のシャドウルート直下のノードを記録する
        max_depth: 子ノード構造を記録する深さ。None は無制限

    Returns:
        生成した ExpectationDocument

    Raises:
        ValueError: shadow=True で root がシャドウルートを持たない場合
    """
    if shadow:
        if root.shadow_root is None:
            raise ValueError(f"<{root.local_name}> はシャドウルートを持っていません")
        source = root.shadow_root.child_nodes
    else:
        source = root.child_nodes

    nodes = [_record_node(node, max_depth, 1) for node in _displayed(source)]
    logger.info("期待値を記録しました: %s（%d ノード）", title, len(nodes))

    document = {"title": title, "selector": selector, "nodes": nodes}
    if url is not None:
        document["url"] = url
    if shadow:
        document["shadow"] = True
    return ExpectationDocument(**document)
