"""
ノードリスト検証：ノード列と checker 列の構造比較

「チェッカー」は (node, message) を受け取り、そのノードが満たすべき条件を
アサーションで検証する関数である。全ての条件を満たせば何も返さずに戻り、
満たさなければ AssertionFailure を送出する。

check_nodes() はノード列をフィルタで絞り込み、残ったノードの数と
チェッカーの数が一致することを確認した上で、各ノードに対応する
チェッカーを順に適用する。最初の失敗で残りの検証は中断される。
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional, Protocol, Sequence

from .. import asserts
from ..dom.nodes import Node
from ..dom.predicates import NodeFilter, NodePredicates

logger = logging.getLogger(__name__)


class Checker(Protocol):
    """ノード 1 つ分の期待値を検証する関数。"""

    def __call__(self, node: Node, message: str = "") -> None:
        ...


def message_prefix(message: Optional[str]) -> str:
    """メッセージを後続の説明の前置きに変換する（空なら空文字列）。"""
    return f"{message}: " if message else ""


def check_nodes(
    nodes: Iterable[Node],
    node_filter: Optional[NodeFilter] = None,
    checkers: Optional[Sequence[Optional[Checker]]] = None,
    message: Optional[str] = None,
) -> list[Node]:
    """ノード列をチェッカー列で検証する。

    Args:
        nodes: 検証対象のノード列
        node_filter: 検証対象を絞り込む述語。None の場合は
            NodePredicates.is_displayed_node を使用する
        checkers: フィルタ後のノード 1 つにつき 1 つのチェッカー。
            None の要素はスキップされる（ノードを消費しない）。
            checkers 自体が None の場合はフィルタ後のノードが 0 件であることを検証する
        message: アサーションメッセージの前置き。各チェッカーにも文脈として渡す

    Returns:
        フィルタ後のノードのリスト

    Raises:
        AssertionFailure: ノード数または各ノードの検証が一致しない場合
    """
    if node_filter is None:
        node_filter = NodePredicates.is_displayed_node
    prefix = message_prefix(message)
    filtered_nodes = [node for node in nodes if node_filter(node)]

    if checkers is None:
        asserts.equal(
            len(filtered_nodes), 0,
            f"{prefix}ノードリストが空であることを検証",
        )
        return filtered_nodes

    expected_checkers: list[Callable[..., None]] = [c for c in checkers if c is not None]
    asserts.equal(
        len(filtered_nodes), len(expected_checkers),
        f"{prefix}ノード数を検証（フィルタ後のノード数: {len(filtered_nodes)}, "
        f"期待するノード数: {len(expected_checkers)}）",
    )

    for index, (node, checker) in enumerate(zip(filtered_nodes, expected_checkers)):
        checker(
            node,
            f"{prefix}ノード #{index} を検証 (nodeName='{node.node_name}')",
        )

    logger.debug("%sノード %d 件の検証に成功しました", prefix, len(filtered_nodes))
    return filtered_nodes
