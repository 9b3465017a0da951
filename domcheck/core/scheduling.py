"""
スケジューラ：「D 秒後にもう一度実行する」機能の抽象化

条件待機とチェーン実行は、このモジュールの Scheduler Protocol だけを通じて
時間を扱う。実装を差し替えることで、asyncio イベントループ・スレッド・
仮想時計のいずれの上でも同じ待機ロジックが動作する。

主な構成:
  - Scheduler: now() / call_later() を持つ Protocol
  - AsyncioScheduler: 実行中の asyncio イベントループを使う（デフォルト）
  - ThreadingScheduler: threading.Timer を使う
  - VirtualScheduler: 仮想時計。テストで時間を決定的に進める
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Scheduler Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class Scheduler(Protocol):
    """待機ロジックが依存する唯一のスケジューリング機能。"""

    def now(self) -> float:
        """単調増加する現在時刻（秒）を返す。"""
        ...

    def call_later(self, delay: float, callback: Callable[[], Any]) -> Any:
        """delay 秒後に callback を呼び出すよう予約する。

        Args:
            delay: 遅延（秒）
            callback: 引数なしのコールバック

        Returns:
            実装依存のハンドル
        """
        ...


# ---------------------------------------------------------------------------
# asyncio 実装
# ---------------------------------------------------------------------------

class AsyncioScheduler:
    """実行中の asyncio イベントループ上でコールバックを予約する。

    call_later() はループ内（コルーチンまたはループのコールバック）から
    呼び出す必要がある。now() はループ外からも呼び出せる。
    """

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError as exc:
            raise RuntimeError(
                "AsyncioScheduler は実行中のイベントループ内でのみ使用できます。"
                "ループ外では scheduler 引数で別の Scheduler を指定してください"
            ) from exc
        return loop.call_later(delay, callback)


# ---------------------------------------------------------------------------
# threading 実装
# ---------------------------------------------------------------------------

class ThreadingScheduler:
    """threading.Timer でコールバックを別スレッドから呼び出す。"""

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], Any]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


# ---------------------------------------------------------------------------
# 仮想時計実装
# ---------------------------------------------------------------------------

@dataclass(order=True)
class _ScheduledCall:
    when: float
    seq: int
    callback: Callable[[], Any] = field(compare=False)


class VirtualScheduler:
    """仮想時計によるスケジューラ。

    advance() / run_until_idle() を呼んだときだけ時間が進み、
    予約済みのコールバックが予定時刻順に実行される。
    コールバック内で送出された例外は呼び出し元にそのまま伝播する。

    使用例::

        scheduler = VirtualScheduler()
        wait_for_condition(cond, on_success, scheduler=scheduler)
        scheduler.advance(0.1)
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[_ScheduledCall] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], Any]) -> _ScheduledCall:
        if delay < 0:
            delay = 0.0
        call = _ScheduledCall(self._now + delay, next(self._counter), callback)
        heapq.heappush(self._queue, call)
        return call

    @property
    def pending(self) -> int:
        """未実行の予約数。"""
        return len(self._queue)

    def advance(self, seconds: float) -> None:
        """時間を seconds 秒進め、その間に予定されたコールバックを実行する。"""
        target = self._now + seconds
        while self._queue and self._queue[0].when <= target:
            call = heapq.heappop(self._queue)
            self._now = max(self._now, call.when)
            call.callback()
        self._now = max(self._now, target)

    def run_until_idle(self, limit: Optional[float] = None) -> None:
        """予約がなくなるまで（または limit 秒経過まで）時間を進める。"""
        end = None if limit is None else self._now + limit
        while self._queue:
            if end is not None and self._queue[0].when > end:
                break
            call = heapq.heappop(self._queue)
            self._now = max(self._now, call.when)
            call.callback()
        if end is not None:
            self._now = max(self._now, end)


# ---------------------------------------------------------------------------
# デフォルトスケジューラ
# ---------------------------------------------------------------------------

_default_scheduler: Scheduler = AsyncioScheduler()


def get_default_scheduler() -> Scheduler:
    """scheduler 引数省略時に使用するスケジューラを返す。"""
    return _default_scheduler


def set_default_scheduler(scheduler: Optional[Scheduler]) -> None:
    """デフォルトスケジューラを差し替える。None で AsyncioScheduler に戻す。"""
    global _default_scheduler
    _default_scheduler = scheduler if scheduler is not None else AsyncioScheduler()
    logger.debug("デフォルトスケジューラを設定しました: %s", type(_default_scheduler).__name__)
