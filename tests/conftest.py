"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
設定（DomCheckConfig）とデフォルトスケジューラはプロセス全体で共有されるため、
各テストの前後で初期状態に戻す。
"""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import strategies as st

from domcheck.config import set_config
from domcheck.core.scheduling import VirtualScheduler, set_default_scheduler
from domcheck.dom.nodes import CommentNode, Element, TextNode

_ENV_KEYS = (
    "DOMCHECK_TIMEOUT_MS",
    "DOMCHECK_POLL_INTERVAL_MS",
    "DOMCHECK_BORDER_BOX_TOLERANCE",
    "DOMCHECK_HEADED",
    "DOMCHECK_VIEWPORT",
)


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _reset_global_state(monkeypatch: pytest.MonkeyPatch):
    """環境変数・設定・デフォルトスケジューラをテストごとに初期化する。"""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    set_config(None)
    set_default_scheduler(None)
    yield
    set_config(None)
    set_default_scheduler(None)


@pytest.fixture
def scheduler() -> VirtualScheduler:
    """時刻 0 から始まる仮想時計のスケジューラ。"""
    return VirtualScheduler()


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """一時ディレクトリを提供する pytest フィクスチャ。"""
    return tmp_path


@pytest.fixture
def sample_expectation_dict() -> dict:
    """サンプルの期待値ドキュメント辞書データ。

    ラベルとアイコン slot を持つボタン要素と、末尾のテキストノードを表す。
    """
    return {
        "title": "ラベル付きボタン",
        "url": "http://localhost:8000/button.html",
        "selector": "#root",
        "nodes": [
            {
                "element": {
                    "name": "my-button",
                    "shadowNodes": [
                        {"element": {"name": "span", "className": "label", "innerText": "OK"}},
                    ],
                    "slots": {"icon": None},
                },
            },
            {"text": "末尾のテキスト"},
        ],
    }


@pytest.fixture
def sample_expectation_yaml() -> str:
    """sample_expectation_dict と同じ内容の YAML 文字列。"""
    return """\
title: ラベル付きボタン
url: http://localhost:8000/button.html
selector: "#root"
nodes:
  - element:
      name: my-button
      shadowNodes:
        - element: {name: span, className: label, innerText: OK}
      slots:
        icon: null
  - text: 末尾のテキスト
"""


@pytest.fixture
def sample_markup() -> str:
    """sample_expectation_dict に一致する #root の HTML。"""
    return (
        '<div id="root">\n'
        '  <my-button>'
        '<template shadowrootmode="open">'
        '<span class="label">OK</span>'
        "</template>"
        "</my-button>\n"
        "  <!-- コメントは無視される -->\n"
        "  末尾のテキスト\n"
        "</div>"
    )


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

_tag_names = st.sampled_from(["div", "span", "p", "li", "button"])
_visible_text = st.text(
    alphabet="abcxyzABC0123あい", min_size=1, max_size=10,
)
_blank_text = st.text(alphabet=" \t\n", max_size=5)


def text_nodes():
    """空白のみ・文字を含むテキストノードを生成するストラテジー。"""
    return st.builds(TextNode, st.one_of(_visible_text, _blank_text))


def comment_nodes():
    """コメントノードを生成するストラテジー。"""
    return st.builds(CommentNode, st.text(max_size=10))


def leaf_elements():
    """子ノードを持たない要素（一部は display: none）を生成するストラテジー。"""
    return st.builds(
        lambda tag, hidden: Element(
            tag, computed_style={"display": "none" if hidden else "block"},
        ),
        _tag_names,
        st.booleans(),
    )


def node_lists():
    """テキスト・コメント・要素が混在するノードリストを生成するストラテジー。"""
    return st.lists(
        st.one_of(text_nodes(), comment_nodes(), leaf_elements()), max_size=12,
    )
