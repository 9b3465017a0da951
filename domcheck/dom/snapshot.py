"""
DOM スナップショット：Playwright 要素のサブツリーを Node ツリーとして取得

1 回の evaluate() 呼び出しで、対象要素以下のノード（シャドウツリーを含む）と
属性・算出スタイル・ボーダーボックス・innerText・innerHTML・DOM プロパティを
JSON として取得し、nodes.py のノードクラスに変換する。

取得したスナップショットはその時点の DOM の状態を固定したものであり、
ノード検証はスナップショットに対して同期的に実行される。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal, Mapping, Sequence, Union

from .nodes import CommentNode, Element, Node, NodeType, Rect, ShadowRoot, TextNode

if TYPE_CHECKING:
    from playwright.async_api import ElementHandle, Locator

logger = logging.getLogger(__name__)

# スナップショットで取得する算出スタイルの既定値
DEFAULT_STYLE_PROPERTIES: tuple[str, ...] = (
    "display",
    "visibility",
    "opacity",
    "position",
    "color",
    "background-color",
    "font-size",
    "font-weight",
    "width",
    "height",
)

# スナップショットで取得する DOM プロパティの既定値
DEFAULT_DOM_PROPERTIES: tuple[str, ...] = (
    "id",
    "value",
    "checked",
    "disabled",
    "hidden",
    "selected",
    "title",
)

ALL_STYLES = "*"

_SERIALIZE_SCRIPT = """
(root, opts) => {
  const allStyles = opts.styles === null;
  const serialize = (node) => {
    if (node.nodeType === Node.TEXT_NODE) {
      return {type: 3, data: node.data};
    }
    if (node.nodeType === Node.COMMENT_NODE) {
      return {type: 8, data: node.data};
    }
    if (node.nodeType !== Node.ELEMENT_NODE) {
      return null;
    }
    const attrs = {};
    for (const attr of node.attributes) {
      attrs[attr.name] = attr.value;
    }
    const computed = getComputedStyle(node);
    const style = {};
    if (allStyles) {
      for (let i = 0; i < computed.length; i++) {
        style[computed[i]] = computed.getPropertyValue(computed[i]);
      }
    } else {
      for (const name of opts.styles) {
        style[name] = name.includes('-') ? computed.getPropertyValue(name) : computed[name];
      }
    }
    const rect = node.getBoundingClientRect();
    const props = {};
    for (const name of opts.properties) {
      const value = node[name];
      if (value === null || ['string', 'number', 'boolean'].includes(typeof value)) {
        props[name] = value;
      }
    }
    const serializeAll = (nodes) => Array.from(nodes).map(serialize).filter(n => n !== null);
    return {
      type: 1,
      tag: node.localName,
      attrs,
      style,
      rect: {left: rect.left, top: rect.top, width: rect.width, height: rect.height},
      props,
      innerText: typeof node.innerText === 'string' ? node.innerText : null,
      innerHTML: opts.html ? node.innerHTML : null,
      children: serializeAll(node.childNodes),
      shadow: node.shadowRoot
        ? {mode: node.shadowRoot.mode, children: serializeAll(node.shadowRoot.childNodes)}
        : null,
    };
  };
  return serialize(root);
}
"""


# ---------------------------------------------------------------------------
# JSON → Node 変換
# ---------------------------------------------------------------------------

def snapshot_from_dict(data: Mapping[str, Any]) -> Node:
    """evaluate() が返した JSON を Node ツリーに変換する。

    Args:
        data: シリアライズ済みノード（type キーでノード種別を判別）

    Returns:
        変換後のノード

    Raises:
        ValueError: 未知のノード種別の場合
    """
    node_type = data.get("type")
    if node_type == NodeType.TEXT_NODE:
        return TextNode(data.get("data", ""))
    if node_type == NodeType.COMMENT_NODE:
        return CommentNode(data.get("data", ""))
    if node_type != NodeType.ELEMENT_NODE:
        raise ValueError(f"未知のノード種別です: {node_type!r}")

    rect_data = data.get("rect")
    shadow_data = data.get("shadow")
    shadow_root = None
    if shadow_data is not None:
        shadow_root = ShadowRoot(
            child_nodes=[snapshot_from_dict(child) for child in shadow_data.get("children", [])],
            mode=shadow_data.get("mode", "open"),
        )

    return Element(
        data.get("tag", ""),
        attributes=dict(data.get("attrs") or {}),
        child_nodes=[snapshot_from_dict(child) for child in data.get("children", [])],
        shadow_root=shadow_root,
        computed_style={k: str(v) for k, v in (data.get("style") or {}).items()},
        rect=Rect(**rect_data) if rect_data else None,
        properties=dict(data.get("props") or {}),
        captured_inner_text=data.get("innerText"),
        captured_inner_html=data.get("innerHTML"),
    )


# ---------------------------------------------------------------------------
# Playwright からの取得
# ---------------------------------------------------------------------------

async def capture_snapshot(
    target: Union[Locator, ElementHandle],
    *,
    styles: Union[Sequence[str], Literal["*"]] = DEFAULT_STYLE_PROPERTIES,
    properties: Sequence[str] = DEFAULT_DOM_PROPERTIES,
    include_html: bool = True,
) -> Element:
    """Playwright の要素以下のサブツリーをスナップショットとして取得する。

    Args:
        target: 対象要素の Locator または ElementHandle
        styles: 取得する算出スタイルのプロパティ名。"*" で全プロパティ。
            display はフィルタ判定に必要なため常に取得する
        properties: 取得する DOM プロパティ名
        include_html: 各要素の innerHTML を取得するか

    Returns:
        対象要素の Element

    Raises:
        ValueError: 対象が要素でない場合
    """
    if styles == ALL_STYLES:
        style_names = None
    else:
        style_names = list(dict.fromkeys(["display", *styles]))

    data = await target.evaluate(
        _SERIALIZE_SCRIPT,
        {"styles": style_names, "properties": list(properties), "html": include_html},
    )
    if not data:
        raise ValueError("スナップショット対象が要素ではありません")

    node = snapshot_from_dict(data)
    if not isinstance(node, Element):
        raise ValueError("スナップショット対象が要素ではありません")
    logger.debug("スナップショットを取得しました: <%s>", node.local_name)
    return node
