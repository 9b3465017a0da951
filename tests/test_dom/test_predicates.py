"""
ノード述語のユニットテスト

テスト対象:
  - NodePredicates: 各述語の判定
  - NAMED_FILTERS / get_named_filter: 名前付きフィルタ
"""

from __future__ import annotations

import pytest
from hypothesis import given

from conftest import node_lists
from domcheck.dom.nodes import CommentNode, Element, TextNode
from domcheck.dom.predicates import NAMED_FILTERS, NodePredicates, get_named_filter


class TestNodePredicates:
    """NodePredicates のテスト。"""

    @pytest.mark.parametrize("data,expected", [
        ("", True), ("  \n\t", True), (" x ", False), ("\xa0", True),
    ])
    def test_whitespace_only_text(self, data: str, expected: bool) -> None:
        """空白のみのテキストノードを判定できること。"""
        assert NodePredicates.is_whitespace_only_text_node(TextNode(data)) is expected

    def test_whitespace_predicate_ignores_other_nodes(self) -> None:
        """テキスト以外のノードは空白テキストとみなさないこと。"""
        assert not NodePredicates.is_whitespace_only_text_node(Element("div"))
        assert not NodePredicates.is_whitespace_only_text_node(CommentNode(""))

    def test_comment(self) -> None:
        assert NodePredicates.is_comment_node(CommentNode("c"))
        assert not NodePredicates.is_comment_node(TextNode("c"))

    def test_display_none(self) -> None:
        """算出スタイルが display: none の要素を判定できること。"""
        assert NodePredicates.is_display_none_element(
            Element("div", computed_style={"display": "none"}),
        )
        assert not NodePredicates.is_display_none_element(
            Element("div", computed_style={"display": "inline"}),
        )
        assert not NodePredicates.is_display_none_element(TextNode("x"))

    def test_displayed(self) -> None:
        """表示中のノードだけが True になること。"""
        assert NodePredicates.is_displayed_node(TextNode("text"))
        assert NodePredicates.is_displayed_node(Element("span"))
        assert not NodePredicates.is_displayed_node(TextNode("   "))
        assert not NodePredicates.is_displayed_node(CommentNode("c"))
        assert not NodePredicates.is_displayed_node(
            Element("span", computed_style={"display": "none"}),
        )

    @given(node_lists())
    def test_displayed_filter_partitions_nodes(self, nodes) -> None:
        """displayed フィルタは除外対象のいずれにも該当しないノードだけを残すこと。"""
        kept = [n for n in nodes if NodePredicates.is_displayed_node(n)]
        dropped = [n for n in nodes if not NodePredicates.is_displayed_node(n)]

        assert len(kept) + len(dropped) == len(nodes)
        for node in kept:
            assert not isinstance(node, CommentNode)
            if isinstance(node, TextNode):
                assert node.data.strip()
            if isinstance(node, Element):
                assert node.get_computed_style().get("display") != "none"
        for node in dropped:
            assert (
                NodePredicates.is_whitespace_only_text_node(node)
                or NodePredicates.is_comment_node(node)
                or NodePredicates.is_display_none_element(node)
            )

    @given(node_lists())
    def test_type_filters_are_exclusive(self, nodes) -> None:
        """elements / text / comments フィルタが全ノードを重複なく分割すること。"""
        counts = [
            sum(1 for n in nodes if NAMED_FILTERS[name](n))
            for name in ("elements", "text", "comments")
        ]
        assert sum(counts) == len(nodes)
        assert all(NAMED_FILTERS["all"](n) for n in nodes)


class TestNamedFilters:
    """名前付きフィルタのテスト。"""

    def test_available_names(self) -> None:
        assert set(NAMED_FILTERS) == {"displayed", "all", "elements", "text", "comments"}

    def test_get_named_filter(self) -> None:
        assert get_named_filter("displayed") is NodePredicates.is_displayed_node

    def test_unknown_name(self) -> None:
        with pytest.raises(KeyError, match="visible"):
            get_named_filter("visible")
