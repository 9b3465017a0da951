"""
HTML 断片パーサー：マークアップからノードツリーを生成

標準ライブラリの html.parser を使用して HTML 断片を Node ツリーに変換する。
ブラウザを起動せずに検証ロジックを試す場合や、期待値の単体テストで使用する。

変換規則:
  - style 属性の宣言はそのまま算出スタイル（computed_style）として扱う
  - hidden 属性を持つ要素は display: none とみなす（style で上書き可）
  - <template shadowrootmode="open"> は親要素のシャドウルートになる
"""

from __future__ import annotations

import logging
from html.parser import HTMLParser
from typing import Optional

from .nodes import VOID_ELEMENTS, CommentNode, Element, Node, ShadowRoot, TextNode

logger = logging.getLogger(__name__)


def parse_inline_style(style: str) -> dict[str, str]:
    """style 属性の値を CSS プロパティ名 → 値 の辞書に変換する。

    Args:
        style: "display: none; color: red" 形式の文字列

    Returns:
        プロパティ名（小文字）→ 値 の辞書
    """
    declarations: dict[str, str] = {}
    for declaration in style.split(";"):
        if ":" not in declaration:
            continue
        name, value = declaration.split(":", 1)
        name = name.strip().lower()
        value = value.strip()
        if name and value:
            declarations[name] = value
    return declarations


class _FragmentBuilder(HTMLParser):
    """HTMLParser のイベントからノードツリーを組み立てる。"""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.roots: list[Node] = []
        # (タグ名, 子ノードの追加先, 要素) のスタック
        self._stack: list[tuple[str, list[Node], Optional[Element]]] = []

    def _current_children(self) -> list[Node]:
        return self._stack[-1][1] if self._stack else self.roots

    def handle_starttag(self, tag: str, attrs: list[tuple[str, Optional[str]]]) -> None:
        attributes = {name: (value if value is not None else "") for name, value in attrs}

        host = self._stack[-1][2] if self._stack else None
        shadow_mode = attributes.get("shadowrootmode") or attributes.get("shadowroot")
        if tag == "template" and shadow_mode and host is not None:
            shadow_root = ShadowRoot(mode=shadow_mode)
            host.shadow_root = shadow_root
            self._stack.append((tag, shadow_root.child_nodes, None))
            return

        style: dict[str, str] = {}
        if "hidden" in attributes:
            style["display"] = "none"
        style.update(parse_inline_style(attributes.get("style", "")))

        element = Element(tag, attributes=attributes, computed_style=style)
        self._current_children().append(element)
        if tag not in VOID_ELEMENTS:
            self._stack.append((tag, element.child_nodes, element))

    def handle_endtag(self, tag: str) -> None:
        for depth in range(len(self._stack) - 1, -1, -1):
            if self._stack[depth][0] == tag:
                del self._stack[depth:]
                return
        logger.debug("対応する開始タグのない終了タグを無視しました: </%s>", tag)

    def handle_data(self, data: str) -> None:
        children = self._current_children()
        if children and isinstance(children[-1], TextNode):
            children[-1].data += data
        else:
            children.append(TextNode(data))

    def handle_comment(self, data: str) -> None:
        self._current_children().append(CommentNode(data))


def parse_fragment(markup: str) -> list[Node]:
    """HTML 断片をトップレベルのノードリストに変換する。

    Args:
        markup: HTML 文字列

    Returns:
        トップレベルのノードのリスト（空白テキスト・コメントも含む）
    """
    builder = _FragmentBuilder()
    builder.feed(markup)
    builder.close()
    return builder.roots


def parse_element(markup: str) -> Element:
    """単一のルート要素を持つ HTML 断片を Element に変換する。

    Raises:
        ValueError: ルート要素がちょうど 1 つでない場合
    """
    elements = [node for node in parse_fragment(markup) if isinstance(node, Element)]
    if len(elements) != 1:
        raise ValueError(
            f"ルート要素は 1 つである必要がありますが、{len(elements)} 個見つかりました"
        )
    return elements[0]
