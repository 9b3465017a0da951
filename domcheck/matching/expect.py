"""
ブラウザ上のノード検証待機

Playwright の要素からスナップショットを取得して check_nodes() で検証し、
一致しなければ一定間隔で取得と検証をやり直す。
待機は wait_for_async_condition で行うため、タイムアウト時の報告は
wait_for_condition と同じ形式（最後の不一致メッセージを含む
ConditionTimeoutError）になる。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Literal, Optional, Sequence, Union

from ..asserts import AssertionFailure
from ..core.waits import wait_for_async_condition
from ..dom.nodes import Element, Node
from ..dom.predicates import NodeFilter
from ..dom.snapshot import DEFAULT_DOM_PROPERTIES, DEFAULT_STYLE_PROPERTIES, capture_snapshot
from .nodes import Checker, check_nodes

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Locator

logger = logging.getLogger(__name__)


def _target_nodes(root: Element, shadow: bool) -> list[Node]:
    if not shadow:
        return root.child_nodes
    if root.shadow_root is None:
        raise AssertionFailure(f"<{root.local_name}> はシャドウルートを持っていません")
    return root.shadow_root.child_nodes


async def expect_nodes(
    target: Union[Locator, ElementHandle],
    checkers: Optional[Sequence[Optional[Checker]]],
    node_filter: Optional[NodeFilter] = None,
    *,
    message: Optional[str] = None,
    timeout_millis: Optional[float] = None,
    shadow: bool = False,
    styles: Union[Sequence[str], Literal["*"]] = DEFAULT_STYLE_PROPERTIES,
    properties: Sequence[str] = DEFAULT_DOM_PROPERTIES,
) -> list[Node]:
    """対象要素の子ノード（またはシャドウルートのノード）が期待値に一致するまで待機する。

    スナップショットの取得に失敗した場合（要素の一時的な切り離しなど）も
    不一致と同じく再試行し、その理由をタイムアウト時に報告する。

    Args:
        target: 対象要素の Locator または ElementHandle
        checkers: check_nodes() に渡すチェッカー列
        node_filter: check_nodes() に渡すフィルタ
        message: アサーションメッセージの前置き（タイムアウト時の説明にも使用）
        timeout_millis: タイムアウト（ミリ秒）。省略時は設定値
        shadow: True の場合はシャドウルート直下のノードを検証する
        styles: スナップショットで取得する算出スタイル
        properties: スナップショットで取得する DOM プロパティ

    Returns:
        フィルタ後のノードのリスト

    Raises:
        ConditionTimeoutError: タイムアウトまでに一致しなかった場合
    """
    matched: list[Node] = []

    async def _matches() -> None:
        root = await capture_snapshot(target, styles=styles, properties=properties)
        matched[:] = check_nodes(_target_nodes(root, shadow), node_filter, checkers, message)

    await wait_for_async_condition(_matches, message or "ノード構造の待機", timeout_millis)
    logger.debug("ノード構造が一致しました: %d ノード", len(matched))
    return matched
