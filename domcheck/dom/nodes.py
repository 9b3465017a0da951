"""
DOM モデル：ノード検証が読み取るノードツリー

ブラウザの DOM をそのまま扱う代わりに、スナップショット（snapshot.py）や
HTML 断片（html.py）から生成したノードツリーに対して検証を行う。
検証時点の DOM の状態を固定できるため、検証処理は同期的に実行できる。

主な構成:
  - NodeType / NodeNames: ノード種別と標準ノード名
  - TextNode / CommentNode / Element / ShadowRoot: ノードクラス
  - Rect: getBoundingClientRect() 相当の矩形
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from html import escape
from typing import Any, ClassVar, Iterator, Mapping, Optional


class NodeType(enum.IntEnum):
    """DOM の Node.nodeType 値。"""

    ELEMENT_NODE = 1
    TEXT_NODE = 3
    COMMENT_NODE = 8
    DOCUMENT_FRAGMENT_NODE = 11


class NodeNames:
    """標準ノード名（Node.nodeName）の定数。"""

    TEXT = "#text"
    COMMENT = "#comment"
    DOCUMENT_FRAGMENT = "#document-fragment"


# 終了タグを持たない要素
VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})

# 内容をエスケープせずに出力する要素
_RAW_TEXT_ELEMENTS = frozenset({"script", "style"})

_WHITESPACE_RUN = re.compile(r"\s+")
_SPACES_AROUND_NEWLINE = re.compile(r" *\n *")
_SPACE_RUN = re.compile(r" {2,}")


# ---------------------------------------------------------------------------
# 矩形
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Rect:
    """要素のボーダーボックス（getBoundingClientRect() 相当）。"""

    left: float = 0.0
    top: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def x(self) -> float:
        return self.left

    @property
    def y(self) -> float:
        return self.top

    def get(self, name: str) -> Optional[float]:
        """名前で値を取得する。未知の名前は None。"""
        if name in ("left", "top", "width", "height", "right", "bottom", "x", "y"):
            return getattr(self, name)
        return None


# ---------------------------------------------------------------------------
# ノード
# ---------------------------------------------------------------------------

class Node:
    """全ノードの基底クラス。"""

    node_type: ClassVar[NodeType]

    @property
    def node_name(self) -> str:
        raise NotImplementedError

    @property
    def text_content(self) -> str:
        raise NotImplementedError


@dataclass(eq=False, repr=False)
class TextNode(Node):
    """テキストノード。"""

    data: str

    node_type: ClassVar[NodeType] = NodeType.TEXT_NODE

    def __repr__(self) -> str:
        return f"TextNode({self.data!r})"

    @property
    def node_name(self) -> str:
        return NodeNames.TEXT

    @property
    def text_content(self) -> str:
        return self.data


@dataclass(eq=False, repr=False)
class CommentNode(Node):
    """コメントノード。"""

    data: str

    node_type: ClassVar[NodeType] = NodeType.COMMENT_NODE

    def __repr__(self) -> str:
        return f"CommentNode({self.data!r})"

    @property
    def node_name(self) -> str:
        return NodeNames.COMMENT

    @property
    def text_content(self) -> str:
        return self.data


@dataclass(eq=False)
class ShadowRoot:
    """要素に付与されたシャドウルート。"""

    child_nodes: list[Node] = field(default_factory=list)
    mode: str = "open"

    node_type: ClassVar[NodeType] = NodeType.DOCUMENT_FRAGMENT_NODE

    @property
    def node_name(self) -> str:
        return NodeNames.DOCUMENT_FRAGMENT


@dataclass(eq=False, repr=False)
class Element(Node):
    """要素ノード。

    Attributes:
        local_name: 小文字のタグ名
        attributes: 属性名 → 値
        child_nodes: 子ノード（ライト DOM）
        shadow_root: シャドウルート（ない場合は None）
        computed_style: 算出スタイル（CSS プロパティ名 → 値）
        rect: ボーダーボックス（取得していない場合は None）
        properties: DOM プロパティのスナップショット（名前 → 値）
        captured_inner_text: ブラウザから取得した innerText
        captured_inner_html: ブラウザから取得した innerHTML
    """

    local_name: str
    attributes: dict[str, str] = field(default_factory=dict)
    child_nodes: list[Node] = field(default_factory=list)
    shadow_root: Optional[ShadowRoot] = None
    computed_style: dict[str, str] = field(default_factory=dict)
    rect: Optional[Rect] = None
    properties: dict[str, Any] = field(default_factory=dict)
    captured_inner_text: Optional[str] = None
    captured_inner_html: Optional[str] = None

    node_type: ClassVar[NodeType] = NodeType.ELEMENT_NODE

    def __post_init__(self) -> None:
        self.local_name = self.local_name.lower()

    def __repr__(self) -> str:
        attrs = "".join(f' {name}="{value}"' for name, value in self.attributes.items())
        return f"<Element {self.local_name}{attrs}>"

    # ----- 名前・属性 -----

    @property
    def node_name(self) -> str:
        return self.local_name.upper()

    @property
    def tag_name(self) -> str:
        return self.local_name.upper()

    @property
    def class_name(self) -> str:
        return self.attributes.get("class", "")

    @property
    def class_list(self) -> list[str]:
        return self.class_name.split()

    def get_attribute(self, name: str) -> Optional[str]:
        return self.attributes.get(name)

    # ----- ツリー -----

    def iter_descendants(self) -> Iterator[Node]:
        """ライト DOM の子孫ノードを文書順に列挙する（シャドウツリーには入らない）。"""
        for child in self.child_nodes:
            yield child
            if isinstance(child, Element):
                yield from child.iter_descendants()

    def query_selector_all_by_attribute(self, name: str, value: str) -> list["Element"]:
        """`*[name="value"]` に一致する子孫要素を文書順に返す。"""
        return [
            node for node in self.iter_descendants()
            if isinstance(node, Element) and node.attributes.get(name) == value
        ]

    # ----- テキスト・HTML -----

    @property
    def text_content(self) -> str:
        return "".join(
            node.data for node in self.iter_descendants() if isinstance(node, TextNode)
        )

    @property
    def inner_html(self) -> str:
        if self.captured_inner_html is not None:
            return self.captured_inner_html
        return "".join(serialize_node(child, self.local_name) for child in self.child_nodes)

    @property
    def inner_text(self) -> str:
        """innerText。取得済みの値がなければ表示中の子孫テキストから近似する。"""
        if self.captured_inner_text is not None:
            return self.captured_inner_text
        text = _SPACE_RUN.sub(" ", self._rendered_text())
        return _SPACES_AROUND_NEWLINE.sub("\n", text)

    def _rendered_text(self) -> str:
        if self.get_computed_style().get("display") == "none":
            return ""
        parts: list[str] = []
        for child in self.child_nodes:
            if isinstance(child, TextNode):
                parts.append(_WHITESPACE_RUN.sub(" ", child.data))
            elif isinstance(child, Element):
                if child.local_name == "br":
                    parts.append("\n")
                else:
                    parts.append(child._rendered_text())
        return "".join(parts)

    # ----- スタイル・レイアウト・プロパティ -----

    def get_computed_style(self) -> Mapping[str, str]:
        return dict(self.computed_style)

    def get_bounding_client_rect(self) -> Rect:
        return self.rect if self.rect is not None else Rect()

    def get_property(self, name: str) -> Any:
        """DOM プロパティの値を返す。

        スナップショットで取得したプロパティを優先し、なければ
        代表的なプロパティを属性・ツリーから導出する。未知の名前は None。
        """
        if name in self.properties:
            return self.properties[name]
        derived = {
            "className": lambda: self.class_name,
            "id": lambda: self.attributes.get("id", ""),
            "tagName": lambda: self.tag_name,
            "localName": lambda: self.local_name,
            "nodeName": lambda: self.node_name,
            "textContent": lambda: self.text_content,
            "innerText": lambda: self.inner_text,
            "innerHTML": lambda: self.inner_html,
            "hidden": lambda: "hidden" in self.attributes,
            "slot": lambda: self.attributes.get("slot", ""),
        }
        if name in derived:
            return derived[name]()
        return self.attributes.get(name)


# ---------------------------------------------------------------------------
# シリアライズ
# ---------------------------------------------------------------------------

def _escape_text(text: str) -> str:
    return escape(text, quote=False).replace("\xa0", "&nbsp;")


def _escape_attribute(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;").replace("\xa0", "&nbsp;")


def serialize_node(node: Node, parent_name: str = "") -> str:
    """ノードを innerHTML と同じ規則で HTML 文字列にする（シャドウツリーは含まない）。"""
    if isinstance(node, TextNode):
        if parent_name in _RAW_TEXT_ELEMENTS:
            return node.data
        return _escape_text(node.data)
    if isinstance(node, CommentNode):
        return f"<!--{node.data}-->"
    if isinstance(node, Element):
        attrs = "".join(
            f' {name}="{_escape_attribute(value)}"' for name, value in node.attributes.items()
        )
        start = f"<{node.local_name}{attrs}>"
        if node.local_name in VOID_ELEMENTS:
            return start
        return f"{start}{node.inner_html}</{node.local_name}>"
    raise TypeError(f"シリアライズできないノードです: {type(node).__name__}")
