"""
チェーン実行：副作用を持つステップ列の逐次実行

ステップ（引数なしの関数）を一つずつ実行し、ステップ間に非同期の遅延を挟む。
retry_timeout を指定すると、各ステップは例外を送出しなくなるまで
wait_for_condition で再試行される。

失敗時の扱い:
  - いずれかのステップが失敗（例外・再試行タイムアウト）するとチェーンは停止する
  - 実行済みのステップは巻き戻さない
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .scheduling import Scheduler, get_default_scheduler
from .waits import wait_for_condition

logger = logging.getLogger(__name__)

ChainStep = Callable[[], Any]


# ---------------------------------------------------------------------------
# 設定
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ChainConfig:
    """チェーン実行の設定。実行中は変更されない。

    Attributes:
        interval: 次のステップを実行するまでの遅延（ミリ秒）。
            0 でも最小限の非同期境界は挟まれる
        retry_timeout: 各ステップを再試行する期間（ミリ秒）。0 で再試行なし
    """

    interval: float = 0
    retry_timeout: float = 0

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError(f"interval は 0 以上で指定してください: {self.interval}")
        if self.retry_timeout < 0:
            raise ValueError(
                f"retry_timeout は 0 以上で指定してください: {self.retry_timeout}"
            )


# ---------------------------------------------------------------------------
# パブリック API
# ---------------------------------------------------------------------------

def run_async_chain(
    config: ChainConfig,
    *steps: ChainStep,
    scheduler: Optional[Scheduler] = None,
    on_complete: Optional[Callable[[], Any]] = None,
    on_failure: Optional[Callable[[BaseException], Any]] = None,
) -> None:
    """ステップ列をステップ間に非同期の遅延を挟んで実行する。

    最初のステップはこの関数の呼び出し中に同期的に実行される。
    いずれかのステップが失敗すると、後続のステップは実行されない。

    Args:
        config: 遅延と再試行の設定
        *steps: 実行するステップ
        scheduler: 遅延の予約に使う Scheduler。省略時はデフォルトスケジューラ
        on_complete: 全ステップの実行後に呼び出される
        on_failure: 失敗時に例外を受け取る。省略時は例外をそのまま送出する
    """
    _run_from(
        config,
        tuple(steps),
        0,
        scheduler or get_default_scheduler(),
        on_complete,
        on_failure,
    )


def async_chain(
    config: ChainConfig,
    *steps: ChainStep,
    scheduler: Optional[Scheduler] = None,
) -> asyncio.Future:
    """run_async_chain の Future 版。

    全ステップの実行後に結果 None で完了し、最初の失敗の例外で失敗する。
    実行中のイベントループ内から呼び出す必要がある。
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _resolve() -> None:
        if not future.done():
            future.set_result(None)

    def _reject(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    run_async_chain(
        config, *steps, scheduler=scheduler, on_complete=_resolve, on_failure=_reject,
    )
    return future


# ---------------------------------------------------------------------------
# 内部実装
# ---------------------------------------------------------------------------

def _run_from(
    config: ChainConfig,
    steps: Sequence[ChainStep],
    index: int,
    scheduler: Scheduler,
    on_complete: Optional[Callable[[], Any]],
    on_failure: Optional[Callable[[BaseException], Any]],
) -> None:
    if index >= len(steps):
        if on_complete is not None:
            on_complete()
        return

    step = steps[index]

    def _invoke_next() -> None:
        scheduler.call_later(
            config.interval / 1000.0,
            lambda: _run_from(config, steps, index + 1, scheduler, on_complete, on_failure),
        )

    if config.retry_timeout == 0:
        try:
            step()
        except Exception as exc:
            logger.debug("チェーンのステップ #%d が失敗しました: %s", index, exc)
            if on_failure is None:
                raise
            on_failure(exc)
            return
        logger.debug("チェーンのステップ #%d を実行しました", index)
        _invoke_next()
        return

    def _step_completes() -> None:
        step()

    wait_for_condition(
        _step_completes,
        _invoke_next,
        on_failure,
        f"チェーンのステップ #{index}",
        config.retry_timeout,
        scheduler=scheduler,
        on_error=on_failure,
    )
