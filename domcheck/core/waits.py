"""
条件待機：非同期に描画される UI 状態のポーリング

利用者の条件関数を一定間隔で評価し、成功・タイムアウト・契約違反のいずれかで
終了する。ビジーループは使わず、Scheduler.call_later() で再評価を予約する。

主な機能:
  - Outcome: 条件の評価結果（satisfied / not yet / not yet + 理由）
  - wait_for_condition: コールバック形式の条件待機
  - async_condition: asyncio.Future を返す条件待機
  - wait_for_async_condition: 評価に await が必要な条件の待機
  - ConditionTimeoutError / ConditionContractError: 失敗の種別

条件関数の戻り値:
  - True / None / Outcome.SATISFIED       → 成功
  - False / Outcome.NOT_YET               → 再評価
  - Outcome.not_yet("理由")               → 理由を記録して再評価
  - 例外送出                              → 例外メッセージを記録して再評価
  - それ以外の値                          → ConditionContractError（再評価しない）
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, ClassVar, Optional, Union

from ..asserts import AssertionFailure
from ..config import get_config
from .scheduling import Scheduler, get_default_scheduler

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class ConditionTimeoutError(AssertionFailure):
    """タイムアウトまでに条件が満たされなかった場合のアサーション失敗。

    Attributes:
        description: 待機内容の説明（None 可）
        timeout_millis: 設定されたタイムアウト（ミリ秒）
        last_failure_reason: 最後に記録された未達理由（None 可）
    """

    def __init__(
        self,
        description: Optional[str],
        timeout_millis: float,
        last_failure_reason: Optional[str] = None,
    ) -> None:
        self.description = description
        self.timeout_millis = timeout_millis
        self.last_failure_reason = last_failure_reason
        prefix = f"{description}: " if description else ""
        last_failure = (
            f" Last failure: {last_failure_reason}" if last_failure_reason else ""
        )
        super().__init__(
            f"{prefix}条件の待機がタイムアウトしました（{timeout_millis}ms 以内に満たされず）。"
            f"{last_failure}",
            "Condition",
            "Fulfilled in time",
        )

    def _format(self) -> str:
        return self.message


class ConditionContractError(TypeError):
    """条件関数が bool / None / Outcome 以外の値を返した場合のエラー。

    テストコード自体の誤りを示すため、再評価もタイムアウトへの置き換えも行わない。
    """


# ---------------------------------------------------------------------------
# 評価結果
# ---------------------------------------------------------------------------

class OutcomeKind(enum.Enum):
    """条件評価結果の種別。"""

    SATISFIED = "satisfied"
    NOT_YET = "not_yet"


@dataclass(frozen=True)
class Outcome:
    """条件関数の明示的な評価結果。

    Attributes:
        kind: 成功か未達か
        reason: 未達の理由（タイムアウト時のメッセージに含まれる）
    """

    kind: OutcomeKind
    reason: Optional[str] = None

    SATISFIED: ClassVar["Outcome"]
    NOT_YET: ClassVar["Outcome"]

    @property
    def satisfied(self) -> bool:
        return self.kind is OutcomeKind.SATISFIED

    @classmethod
    def not_yet(cls, reason: Optional[str] = None) -> "Outcome":
        """理由付きの未達結果を生成する。"""
        return cls(OutcomeKind.NOT_YET, reason)


# dataclass のフィールドにならないよう、クラス定義後に定数を設定する
Outcome.SATISFIED = Outcome(OutcomeKind.SATISFIED)
Outcome.NOT_YET = Outcome(OutcomeKind.NOT_YET)

ConditionResult = Union[bool, None, Outcome]
Condition = Callable[[], ConditionResult]


def describe_failure(exc: BaseException) -> str:
    """例外の短い説明を返す。メッセージが空の場合は型名を角括弧で囲んで返す。"""
    message = str(exc)
    if message:
        return message
    return f"[{type(exc).__name__}]"


def _normalize(result: Any, description: Optional[str]) -> Outcome:
    """条件関数の戻り値を Outcome に正規化する。

    Raises:
        ConditionContractError: 許可されていない型の値が返された場合
    """
    if result is True or result is None:
        return Outcome.SATISFIED
    if result is False:
        return Outcome.NOT_YET
    if isinstance(result, Outcome):
        return result
    prefix = f"{description}: " if description else ""
    raise ConditionContractError(
        f"{prefix}wait_for_condition に渡す条件関数は bool / None / Outcome の"
        f"いずれかを返す必要がありますが、{type(result).__name__} 型の値が"
        f"返されました: {result!r}"
    )


# ---------------------------------------------------------------------------
# ポーリング状態機械
# ---------------------------------------------------------------------------

class PollState(enum.Enum):
    """ConditionPoll の状態。"""

    EVALUATING = "evaluating"
    SUCCEEDED = "succeeded"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


class ConditionPoll:
    """1 回の wait_for_condition 呼び出しが所有するポーリング状態。

    EVALUATING → (SUCCEEDED | EVALUATING | TIMED_OUT | FAILED) と遷移する。
    期限（deadline）は start() 時に一度だけ決まり、延長されない。
    """

    def __init__(
        self,
        condition: Condition,
        on_success: Callable[[], Any],
        on_failure: Optional[Callable[[ConditionTimeoutError], Any]],
        description: Optional[str],
        timeout_millis: float,
        scheduler: Scheduler,
        interval_millis: float,
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> None:
        self._condition = condition
        self._on_success = on_success
        self._on_failure = on_failure
        self.on_error = on_error
        self.description = description
        self.timeout_millis = timeout_millis
        self._scheduler = scheduler
        self._interval = interval_millis / 1000.0
        self.deadline: Optional[float] = None
        self.last_failure_reason: Optional[str] = None
        self.attempts = 0
        self.state = PollState.EVALUATING

    def start(self) -> None:
        """期限を確定し、最初の評価を同期的に行う。"""
        self.deadline = self._scheduler.now() + self.timeout_millis / 1000.0
        self._evaluate()

    def _evaluate(self) -> None:
        if self.state is not PollState.EVALUATING:
            return

        if self._scheduler.now() > self.deadline:
            self._time_out()
            return

        self.attempts += 1
        try:
            result = self._condition()
        except Exception as exc:
            # 例外は未達として扱い、理由だけ記録する
            self.last_failure_reason = describe_failure(exc)
            outcome = Outcome.NOT_YET
        else:
            try:
                outcome = _normalize(result, self.description)
            except ConditionContractError as exc:
                self.state = PollState.FAILED
                if self.on_error is None:
                    raise
                self.on_error(exc)
                return

        if outcome.satisfied:
            self.state = PollState.SUCCEEDED
            logger.debug(
                "条件が満たされました（%d 回目の評価）: %s",
                self.attempts, self.description or "",
            )
            self._on_success()
            return

        if outcome.reason is not None:
            self.last_failure_reason = outcome.reason

        self._scheduler.call_later(self._interval, self._evaluate)

    def _time_out(self) -> None:
        self.state = PollState.TIMED_OUT
        error = ConditionTimeoutError(
            self.description, self.timeout_millis, self.last_failure_reason,
        )
        logger.debug("条件待機がタイムアウトしました: %s", error)
        if self._on_failure is None:
            raise error
        self._on_failure(error)


# ---------------------------------------------------------------------------
# パブリック API
# ---------------------------------------------------------------------------

def wait_for_condition(
    condition: Condition,
    on_success: Callable[[], Any],
    on_failure: Optional[Callable[[ConditionTimeoutError], Any]] = None,
    description: Optional[str] = None,
    timeout_millis: Optional[float] = None,
    *,
    scheduler: Optional[Scheduler] = None,
    on_error: Optional[Callable[[BaseException], Any]] = None,
) -> ConditionPoll:
    """条件が満たされるまで待機し、満たされたら on_success を呼び出す。

    最初の評価は同期的に行われるため、呼び出し時点で条件が満たされていれば
    on_success はこの関数から戻る前に呼び出される。以降の評価は
    scheduler.call_later() で一定間隔ごとに予約される。

    Args:
        condition: 引数なしの条件関数（戻り値はモジュール docstring 参照）
        on_success: 条件が満たされたときに一度だけ呼び出される
        on_failure: タイムアウト時に ConditionTimeoutError を受け取る。
            省略時はエラーをそのまま送出する
        description: タイムアウトメッセージに含める説明
        timeout_millis: タイムアウト（ミリ秒）。省略時は設定値（デフォルト 2000）
        scheduler: 再評価の予約に使う Scheduler。省略時はデフォルトスケジューラ
        on_error: 条件関数の契約違反を受け取る。省略時は送出する

    Returns:
        この呼び出しのポーリング状態

    Raises:
        ConditionContractError: 条件関数が許可されていない値を返した場合
        ConditionTimeoutError: on_failure 未指定でタイムアウトした場合
    """
    config = get_config()
    if timeout_millis is None:
        timeout_millis = config.default_timeout_millis
    poll = ConditionPoll(
        condition,
        on_success,
        on_failure,
        description,
        timeout_millis,
        scheduler or get_default_scheduler(),
        config.poll_interval_millis,
        on_error=on_error,
    )
    poll.start()
    return poll


def async_condition(
    condition: Condition,
    description: Optional[str] = None,
    timeout_millis: Optional[float] = None,
    *,
    scheduler: Optional[Scheduler] = None,
) -> asyncio.Future:
    """wait_for_condition の Future 版。

    成功時に結果 None で完了し、タイムアウト時は ConditionTimeoutError で失敗する。
    実行中のイベントループ内から呼び出す必要がある。

    使用例::

        await async_condition(lambda: panel.is_open, "panel open", 500)

    Returns:
        条件の成否を表す asyncio.Future
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _resolve() -> None:
        if not future.done():
            future.set_result(None)

    def _reject(exc: BaseException) -> None:
        if not future.done():
            future.set_exception(exc)

    poll = ConditionPoll(
        condition,
        _resolve,
        _reject,
        description,
        timeout_millis if timeout_millis is not None else get_config().default_timeout_millis,
        scheduler or get_default_scheduler(),
        get_config().poll_interval_millis,
        on_error=None,
    )
    # 最初の評価での契約違反は呼び出し元へ送出し、以降は Future を失敗させる
    poll.start()
    poll.on_error = _reject
    return future


async def wait_for_async_condition(
    condition: Callable[[], Awaitable[ConditionResult]],
    description: Optional[str] = None,
    timeout_millis: Optional[float] = None,
) -> None:
    """コルーチンを返す条件関数を、満たされるまで一定間隔で評価する。

    戻り値・例外の扱いとタイムアウト判定は wait_for_condition と同じ。
    ブラウザからのスナップショット取得のように、評価自体が await を
    必要とする条件に使う。評価中の待ち時間も経過時間に含まれる。

    Args:
        condition: 引数なしで awaitable を返す条件関数
        description: タイムアウトメッセージに含める説明
        timeout_millis: タイムアウト（ミリ秒）。省略時は設定値

    Raises:
        ConditionContractError: 条件関数が許可されていない値を返した場合
        ConditionTimeoutError: タイムアウトまでに条件が満たされなかった場合
    """
    config = get_config()
    if timeout_millis is None:
        timeout_millis = config.default_timeout_millis
    interval = config.poll_interval_millis / 1000.0

    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_millis / 1000.0
    last_failure_reason: Optional[str] = None
    attempts = 0

    while True:
        if loop.time() > deadline:
            error = ConditionTimeoutError(description, timeout_millis, last_failure_reason)
            logger.debug("条件待機がタイムアウトしました: %s", error)
            raise error

        attempts += 1
        try:
            result = await condition()
        except Exception as exc:
            last_failure_reason = describe_failure(exc)
            outcome = Outcome.NOT_YET
        else:
            outcome = _normalize(result, description)

        if outcome.satisfied:
            logger.debug(
                "条件が満たされました（%d 回目の評価）: %s", attempts, description or "",
            )
            return

        if outcome.reason is not None:
            last_failure_reason = outcome.reason
        logger.debug("条件が未達です（%d 回目）: %s", attempts, last_failure_reason)
        await asyncio.sleep(interval)
