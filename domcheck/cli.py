"""
CLI エントリポイント：Typer ベースのコマンドラインインターフェース

domcheck コマンドとして以下のサブコマンドを提供する:
  - validate: 期待値ファイルのスキーマ検証
  - snapshot: ページのノード構造を期待値ファイルとして記録
  - check: ページのノード構造を期待値ファイルで検証
  - list-checkers: 登録済みチェッカー一覧
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

import typer

from .asserts import AssertionFailure
from .config import DomCheckConfig, get_config
from .dom.snapshot import DEFAULT_DOM_PROPERTIES, DEFAULT_STYLE_PROPERTIES
from .dsl.parser import ExpectationParser
from .dsl.recorder import expectation_from_node

if TYPE_CHECKING:
    from .dom.nodes import Element, Node
    from .dsl.schema import ExpectationDocument

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "domcheck：DOM ノード構造の検証ツール\n\n"
        "基本の流れ:\n"
        "  1. domcheck snapshot URL -o expect.yaml   現在の構造を記録\n"
        "  2. expect.yaml を手直し\n"
        "  3. domcheck check expect.yaml              構造を検証\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# ブラウザ操作（テストから差し替え可能なヘルパー）
# ---------------------------------------------------------------------------

async def _capture_page(
    url: str, selector: str, headed: bool, config: DomCheckConfig,
) -> Element:
    """ページを開いて selector の要素のスナップショットを取得する。"""
    from playwright.async_api import async_playwright

    from .dom.snapshot import capture_snapshot

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=not headed)
        try:
            page = await browser.new_page(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
            )
            await page.goto(url)
            logger.info("ページを開きました: %s", url)
            locator = page.locator(selector).first
            await locator.wait_for(
                state="attached", timeout=config.default_timeout_millis,
            )
            return await capture_snapshot(locator)
        finally:
            await browser.close()


def _merge_names(defaults: Sequence[str], extra: Sequence[str]) -> tuple[str, ...]:
    """既定の取得対象に期待値で参照される名前を加える（重複なし）。"""
    return tuple(dict.fromkeys([*defaults, *extra]))


async def _check_page(
    document: ExpectationDocument,
    url: str,
    timeout_millis: Optional[int],
    headed: bool,
    config: DomCheckConfig,
) -> list[Node]:
    """ページを開いて期待値ドキュメントのノード構造を検証する。"""
    from playwright.async_api import async_playwright

    from .matching.expect import expect_nodes

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=not headed)
        try:
            page = await browser.new_page(
                viewport={"width": config.viewport_width, "height": config.viewport_height},
            )
            await page.goto(url)
            logger.info("ページを開きました: %s", url)
            locator = page.locator(document.selector).first
            return await expect_nodes(
                locator,
                document.to_checkers(),
                document.node_filter(),
                message=document.title,
                timeout_millis=timeout_millis,
                shadow=document.shadow,
                styles=_merge_names(DEFAULT_STYLE_PROPERTIES, document.style_names()),
                properties=_merge_names(DEFAULT_DOM_PROPERTIES, document.property_names()),
            )
        finally:
            await browser.close()


# ---------------------------------------------------------------------------
# validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def validate(
    yaml_file: Path = typer.Argument(..., help="検証する期待値ファイル"),
) -> None:
    """期待値ファイルのスキーマ検証を行う。"""
    parser = ExpectationParser()
    errors = parser.validate(yaml_file)

    if not errors:
        typer.echo(f"✓ {yaml_file}: スキーマ検証 OK")
        return

    for err in errors:
        line_info = f" (行 {err.line})" if err.line else ""
        typer.echo(f"✗ {err.location}{line_info}: {err.message}", err=True)
    raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# snapshot コマンド
# ---------------------------------------------------------------------------

@app.command()
def snapshot(
    url: str = typer.Argument(..., help="記録するページの URL"),
    selector: str = typer.Option(
        "body", "--selector", "-s", help="記録する要素の CSS セレクタ（その子ノードを記録）",
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="出力先 YAML ファイル（省略時は標準出力）",
    ),
    title: Optional[str] = typer.Option(
        None, "--title", "-t", help="期待値の名前（省略時は URL）",
    ),
    max_depth: Optional[int] = typer.Option(
        None, "--max-depth", min=1, help="子ノード構造を記録する深さ（省略時は無制限）",
    ),
    headed: Optional[bool] = typer.Option(
        None, "--headed/--headless", help="ブラウザ表示モード（省略時は DOMCHECK_HEADED）",
    ),
) -> None:
    """ページのノード構造を期待値ファイルとして記録する。"""
    config = get_config()
    if headed is None:
        headed = config.headed

    try:
        root = asyncio.run(_capture_page(url, selector, headed, config))
        document = expectation_from_node(
            root, title or url, selector=selector, url=url, max_depth=max_depth,
        )
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    parser = ExpectationParser()
    if output is None:
        typer.echo(parser.dumps(document), nl=False)
        return

    parser.dump(document, output)
    typer.echo(f"期待値を記録しました: {output}（{len(document.nodes or [])} ノード）")


# ---------------------------------------------------------------------------
# check コマンド
# ---------------------------------------------------------------------------

@app.command()
def check(
    yaml_file: Path = typer.Argument(..., help="検証に使う期待値ファイル"),
    url: Optional[str] = typer.Option(
        None, "--url", "-u", help="検証するページの URL（期待値ファイルの url を上書き）",
    ),
    timeout: Optional[int] = typer.Option(
        None, "--timeout", min=0, help="一致するまで待機する時間（ミリ秒）",
    ),
    headed: Optional[bool] = typer.Option(
        None, "--headed/--headless", help="ブラウザ表示モード（省略時は DOMCHECK_HEADED）",
    ),
) -> None:
    """ページのノード構造を期待値ファイルで検証する。"""
    config = get_config()
    if headed is None:
        headed = config.headed

    try:
        document = ExpectationParser().load(yaml_file)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    target_url = url or document.url
    if not target_url:
        typer.echo("エラー: URL が指定されていません（--url または期待値ファイルの url）", err=True)
        raise typer.Exit(code=1)

    timeout_millis = timeout if timeout is not None else document.timeout

    try:
        nodes = asyncio.run(_check_page(document, target_url, timeout_millis, headed, config))
    except AssertionFailure as exc:
        typer.echo(f"✗ {document.title}: {exc}", err=True)
        raise typer.Exit(code=1)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"✓ {document.title}: {len(nodes)} ノードが期待値に一致しました")


# ---------------------------------------------------------------------------
# list-checkers コマンド
# ---------------------------------------------------------------------------

@app.command("list-checkers")
def list_checkers() -> None:
    """期待値ファイルの checker エントリで使えるチェッカーの一覧を表示する。"""
    from .matching.registry import default_registry

    for info in default_registry().list_all():
        typer.echo(f"  {info.name:<12} {info.description}")
