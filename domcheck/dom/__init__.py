# DOM モデル
# ノードクラス、ノード述語、HTML 断片パーサー、Playwright スナップショットを提供

from .html import parse_element, parse_fragment
from .nodes import CommentNode, Element, Node, NodeNames, NodeType, Rect, ShadowRoot, TextNode
from .predicates import NAMED_FILTERS, NodeFilter, NodePredicates, get_named_filter
from .snapshot import capture_snapshot, snapshot_from_dict

__all__ = [
    "CommentNode",
    "Element",
    "NAMED_FILTERS",
    "Node",
    "NodeFilter",
    "NodeNames",
    "NodePredicates",
    "NodeType",
    "Rect",
    "ShadowRoot",
    "TextNode",
    "capture_snapshot",
    "get_named_filter",
    "parse_element",
    "parse_fragment",
    "snapshot_from_dict",
]
