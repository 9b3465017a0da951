"""
条件待機のユニットテスト

VirtualScheduler で時間を決定的に進めて検証する。
async_condition は実際のイベントループ上でも検証する。

テスト対象:
  - wait_for_condition: 成功・再評価・タイムアウト・契約違反
  - Outcome: 評価結果の表現
  - async_condition: Future 版の条件待機
  - wait_for_async_condition: 評価に await が必要な条件の待機
"""

from __future__ import annotations

import asyncio

import pytest

from domcheck.asserts import AssertionFailure
from domcheck.config import DomCheckConfig, set_config
from domcheck.core.scheduling import VirtualScheduler, set_default_scheduler
from domcheck.core.waits import (
    ConditionContractError,
    ConditionTimeoutError,
    Outcome,
    OutcomeKind,
    PollState,
    async_condition,
    describe_failure,
    wait_for_async_condition,
    wait_for_condition,
)


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

class _Recorder:
    """on_success / on_failure の呼び出しを記録する。"""

    def __init__(self, scheduler: VirtualScheduler) -> None:
        self._scheduler = scheduler
        self.successes: list[float] = []
        self.failures: list[tuple[float, ConditionTimeoutError]] = []

    def on_success(self) -> None:
        self.successes.append(self._scheduler.now())

    def on_failure(self, error: ConditionTimeoutError) -> None:
        self.failures.append((self._scheduler.now(), error))


def _succeed_after(count: int):
    """count 回目の評価で True を返す条件関数を生成する。"""
    state = {"calls": 0}

    def condition() -> bool:
        state["calls"] += 1
        return state["calls"] >= count

    condition.state = state
    return condition


# ===========================================================================
# テスト: wait_for_condition
# ===========================================================================

class TestWaitForCondition:
    """wait_for_condition のテスト（VirtualScheduler ベース）。"""

    def test_immediate_success_is_synchronous(self, scheduler: VirtualScheduler) -> None:
        """最初の評価で満たされた場合、戻る前に on_success が呼ばれること。"""
        rec = _Recorder(scheduler)

        poll = wait_for_condition(
            lambda: True, rec.on_success, rec.on_failure, "即時", 100, scheduler=scheduler,
        )

        assert rec.successes == [0.0]
        assert poll.state is PollState.SUCCEEDED
        assert scheduler.pending == 0

    @pytest.mark.parametrize("value", [True, None, Outcome.SATISFIED])
    def test_satisfied_values(self, scheduler: VirtualScheduler, value) -> None:
        """True / None / Outcome.SATISFIED がいずれも成功として扱われること。"""
        rec = _Recorder(scheduler)

        wait_for_condition(lambda: value, rec.on_success, rec.on_failure, scheduler=scheduler)

        assert len(rec.successes) == 1

    def test_success_after_retries(self, scheduler: VirtualScheduler) -> None:
        """数回の未達の後に満たされた場合、ポーリング間隔ごとに再評価されること。"""
        rec = _Recorder(scheduler)
        condition = _succeed_after(3)

        poll = wait_for_condition(
            condition, rec.on_success, rec.on_failure, "3 回目で成功", 1000, scheduler=scheduler,
        )
        assert rec.successes == []

        scheduler.run_until_idle()

        assert rec.successes == [pytest.approx(0.04)]
        assert rec.failures == []
        assert poll.attempts == 3
        assert condition.state["calls"] == 3

    def test_on_success_called_once(self, scheduler: VirtualScheduler) -> None:
        """成功後は再評価も再呼び出しも行われないこと。"""
        rec = _Recorder(scheduler)
        calls = {"n": 0}

        def condition() -> bool:
            calls["n"] += 1
            return True

        wait_for_condition(condition, rec.on_success, rec.on_failure, scheduler=scheduler)
        scheduler.run_until_idle(limit=5.0)

        assert len(rec.successes) == 1
        assert calls["n"] == 1

    def test_timeout_not_before_deadline(self, scheduler: VirtualScheduler) -> None:
        """常に未達の条件は、期限を過ぎてから on_failure が一度だけ呼ばれること。"""
        rec = _Recorder(scheduler)

        poll = wait_for_condition(
            lambda: False, rec.on_success, rec.on_failure, "panel open", 100,
            scheduler=scheduler,
        )
        scheduler.run_until_idle()

        assert rec.successes == []
        assert len(rec.failures) == 1
        failed_at, error = rec.failures[0]
        assert failed_at >= 0.1
        assert failed_at < 0.1 + 0.05
        assert poll.state is PollState.TIMED_OUT
        assert "100ms" in str(error)
        assert "panel open" in str(error)

    def test_timeout_error_is_assertion_failure(self, scheduler: VirtualScheduler) -> None:
        """タイムアウトエラーがアサーション失敗として扱えること。"""
        rec = _Recorder(scheduler)

        wait_for_condition(lambda: False, rec.on_success, rec.on_failure, None, 50,
                           scheduler=scheduler)
        scheduler.run_until_idle()

        error = rec.failures[0][1]
        assert isinstance(error, AssertionFailure)
        assert isinstance(error, AssertionError)
        assert error.actual == "Condition"
        assert error.expected == "Fulfilled in time"
        assert error.timeout_millis == 50

    def test_timeout_without_on_failure_raises(self, scheduler: VirtualScheduler) -> None:
        """on_failure 未指定の場合、タイムアウトは例外として送出されること。"""
        wait_for_condition(lambda: False, lambda: None, None, "送出", 40, scheduler=scheduler)

        with pytest.raises(ConditionTimeoutError, match="40ms"):
            scheduler.run_until_idle()

    def test_exception_reason_is_reported(self, scheduler: VirtualScheduler) -> None:
        """条件関数の例外は再評価され、最後のメッセージがタイムアウトに含まれること。"""
        rec = _Recorder(scheduler)

        def condition() -> bool:
            raise ValueError("まだ描画されていません")

        wait_for_condition(condition, rec.on_success, rec.on_failure, "描画", 60,
                           scheduler=scheduler)
        scheduler.run_until_idle()

        error = rec.failures[0][1]
        assert error.last_failure_reason == "まだ描画されていません"
        assert "Last failure: まだ描画されていません" in str(error)

    def test_empty_exception_message_uses_type_name(self, scheduler: VirtualScheduler) -> None:
        """メッセージのない例外は型名で記録されること。"""
        rec = _Recorder(scheduler)

        def condition() -> bool:
            raise RuntimeError()

        wait_for_condition(condition, rec.on_success, rec.on_failure, None, 30,
                           scheduler=scheduler)
        scheduler.run_until_idle()

        assert rec.failures[0][1].last_failure_reason == "[RuntimeError]"

    def test_outcome_reason_is_reported(self, scheduler: VirtualScheduler) -> None:
        """Outcome.not_yet() の理由がタイムアウトに含まれること。"""
        rec = _Recorder(scheduler)

        wait_for_condition(
            lambda: Outcome.not_yet("spinner still visible"),
            rec.on_success, rec.on_failure, None, 30, scheduler=scheduler,
        )
        scheduler.run_until_idle()

        assert "spinner still visible" in str(rec.failures[0][1])

    def test_plain_false_keeps_previous_reason(self, scheduler: VirtualScheduler) -> None:
        """理由なしの未達は、それまでに記録された理由を上書きしないこと。"""
        rec = _Recorder(scheduler)
        state = {"calls": 0}

        def condition():
            state["calls"] += 1
            if state["calls"] == 1:
                return Outcome.not_yet("first reason")
            return False

        wait_for_condition(condition, rec.on_success, rec.on_failure, None, 60,
                           scheduler=scheduler)
        scheduler.run_until_idle()

        assert rec.failures[0][1].last_failure_reason == "first reason"

    def test_no_reason_when_never_recorded(self, scheduler: VirtualScheduler) -> None:
        """理由が一度も記録されなければ Last failure を含まないこと。"""
        rec = _Recorder(scheduler)

        wait_for_condition(lambda: False, rec.on_success, rec.on_failure, None, 30,
                           scheduler=scheduler)
        scheduler.run_until_idle()

        assert "Last failure" not in str(rec.failures[0][1])

    @pytest.mark.parametrize("value", ["yes", 1, 0, [], object()])
    def test_contract_error_on_first_evaluation(
        self, scheduler: VirtualScheduler, value,
    ) -> None:
        """bool / None / Outcome 以外を返すと ConditionContractError が即座に送出されること。"""
        rec = _Recorder(scheduler)

        with pytest.raises(ConditionContractError):
            wait_for_condition(lambda: value, rec.on_success, rec.on_failure,
                               scheduler=scheduler)

        assert rec.successes == []
        assert rec.failures == []
        assert scheduler.pending == 0

    def test_contract_error_is_type_error(self) -> None:
        """ConditionContractError は TypeError のサブクラスであること。"""
        assert issubclass(ConditionContractError, TypeError)

    def test_contract_error_on_later_evaluation(self, scheduler: VirtualScheduler) -> None:
        """再評価時の契約違反は、そのタイマーから送出されポーリングが停止すること。"""
        rec = _Recorder(scheduler)
        state = {"calls": 0}

        def condition():
            state["calls"] += 1
            return False if state["calls"] == 1 else "oops"

        poll = wait_for_condition(condition, rec.on_success, rec.on_failure, None, 1000,
                                  scheduler=scheduler)

        with pytest.raises(ConditionContractError, match="str"):
            scheduler.run_until_idle()

        assert poll.state is PollState.FAILED
        assert scheduler.pending == 0
        assert rec.failures == []

    def test_contract_error_routed_to_on_error(self, scheduler: VirtualScheduler) -> None:
        """on_error を指定すると契約違反はそちらに渡されること。"""
        errors: list[BaseException] = []

        poll = wait_for_condition(
            lambda: 42, lambda: None, None, "契約", 100,
            scheduler=scheduler, on_error=errors.append,
        )

        assert len(errors) == 1
        assert isinstance(errors[0], ConditionContractError)
        assert "契約" in str(errors[0])
        assert poll.state is PollState.FAILED

    def test_zero_timeout_still_evaluates_once(self, scheduler: VirtualScheduler) -> None:
        """タイムアウト 0 でも最初の評価は行われること。"""
        rec = _Recorder(scheduler)

        wait_for_condition(lambda: True, rec.on_success, rec.on_failure, None, 0,
                           scheduler=scheduler)

        assert rec.successes == [0.0]

    def test_defaults_come_from_config(self, scheduler: VirtualScheduler) -> None:
        """タイムアウトとポーリング間隔の既定値が設定から読み込まれること。"""
        set_config(DomCheckConfig(default_timeout_millis=250, poll_interval_millis=100))
        rec = _Recorder(scheduler)

        poll = wait_for_condition(lambda: False, rec.on_success, rec.on_failure,
                                  scheduler=scheduler)
        scheduler.run_until_idle()

        assert poll.timeout_millis == 250
        assert poll.attempts == 3
        assert "250ms" in str(rec.failures[0][1])

    def test_uses_default_scheduler(self, scheduler: VirtualScheduler) -> None:
        """scheduler 省略時はデフォルトスケジューラが使われること。"""
        set_default_scheduler(scheduler)
        rec = _Recorder(scheduler)

        wait_for_condition(_succeed_after(2), rec.on_success, rec.on_failure)
        scheduler.run_until_idle()

        assert rec.successes == [pytest.approx(0.02)]

    def test_independent_polls(self, scheduler: VirtualScheduler) -> None:
        """複数の待機が互いに干渉しないこと。"""
        fast = _Recorder(scheduler)
        slow = _Recorder(scheduler)

        wait_for_condition(_succeed_after(2), fast.on_success, fast.on_failure, "fast", 1000,
                           scheduler=scheduler)
        wait_for_condition(lambda: False, slow.on_success, slow.on_failure, "slow", 100,
                           scheduler=scheduler)
        scheduler.run_until_idle()

        assert len(fast.successes) == 1
        assert fast.failures == []
        assert slow.successes == []
        assert "slow" in str(slow.failures[0][1])


# ===========================================================================
# テスト: Outcome / describe_failure
# ===========================================================================

class TestOutcome:
    """Outcome のテスト。"""

    def test_constants(self) -> None:
        """定数の種別が正しいこと。"""
        assert Outcome.SATISFIED.satisfied
        assert Outcome.SATISFIED.kind is OutcomeKind.SATISFIED
        assert not Outcome.NOT_YET.satisfied
        assert Outcome.NOT_YET.reason is None

    def test_not_yet_with_reason(self) -> None:
        """not_yet() が理由付きの未達結果を返すこと。"""
        outcome = Outcome.not_yet("loading")
        assert not outcome.satisfied
        assert outcome.reason == "loading"

    def test_describe_failure(self) -> None:
        """例外メッセージ、または型名が返ること。"""
        assert describe_failure(ValueError("bad")) == "bad"
        assert describe_failure(KeyError()) == "[KeyError]"


# ===========================================================================
# テスト: async_condition
# ===========================================================================

class TestAsyncCondition:
    """async_condition のテスト（実イベントループ）。"""

    async def test_resolves_when_condition_met(self) -> None:
        """条件が満たされると Future が None で完了すること。"""
        condition = _succeed_after(3)

        result = await async_condition(condition, "3 回目で成功", 1000)

        assert result is None
        assert condition.state["calls"] == 3

    async def test_already_resolved_for_immediate_success(self) -> None:
        """最初の評価で満たされた場合、返される Future は完了済みであること。"""
        future = async_condition(lambda: True)

        assert future.done()
        await future

    async def test_rejects_on_timeout(self) -> None:
        """タイムアウト時は ConditionTimeoutError で失敗すること。"""
        with pytest.raises(ConditionTimeoutError, match="never"):
            await async_condition(lambda: False, "never", 50)

    async def test_first_contract_error_raises_synchronously(self) -> None:
        """最初の評価での契約違反は呼び出し時に送出されること。"""
        with pytest.raises(ConditionContractError):
            async_condition(lambda: "not a bool")

    async def test_later_contract_error_rejects_future(self) -> None:
        """再評価時の契約違反は Future の失敗になること。"""
        state = {"calls": 0}

        def condition():
            state["calls"] += 1
            return False if state["calls"] == 1 else 3.14

        with pytest.raises(ConditionContractError):
            await async_condition(condition, None, 1000)

    async def test_with_virtual_scheduler(self, scheduler: VirtualScheduler) -> None:
        """VirtualScheduler を指定すると仮想時計で完了すること。"""
        future = async_condition(_succeed_after(2), None, 1000, scheduler=scheduler)
        assert not future.done()

        scheduler.advance(0.02)

        assert future.done()
        assert future.result() is None

    async def test_concurrent_waits(self) -> None:
        """複数の async_condition を並行して待機できること。"""
        await asyncio.gather(
            async_condition(_succeed_after(2), "a", 1000),
            async_condition(_succeed_after(4), "b", 1000),
        )


# ===========================================================================
# テスト: wait_for_async_condition
# ===========================================================================

class TestWaitForAsyncCondition:
    """wait_for_async_condition のテスト（実イベントループ）。"""

    @pytest.fixture(autouse=True)
    def _fast_polling(self) -> None:
        set_config(DomCheckConfig(poll_interval_millis=1))

    async def test_succeeds_after_retries(self) -> None:
        """条件が満たされるまで再評価されること。"""
        condition = _succeed_after(3)

        async def evaluate():
            return condition()

        await wait_for_async_condition(evaluate, "3 回目で成功", 1000)

        assert condition.state["calls"] == 3

    async def test_timeout_carries_last_reason(self) -> None:
        """タイムアウト時は wait_for_condition と同じ形式のエラーになること。"""
        async def evaluate():
            return Outcome.not_yet("まだ描画されていない")

        with pytest.raises(ConditionTimeoutError) as exc_info:
            await wait_for_async_condition(evaluate, "描画待ち", 20)

        error = exc_info.value
        assert error.description == "描画待ち"
        assert error.timeout_millis == 20
        assert error.last_failure_reason == "まだ描画されていない"

    async def test_exception_is_retried_and_recorded(self) -> None:
        """例外は未達として記録され、空メッセージは型名で表されること。"""
        async def evaluate():
            raise AssertionFailure("")

        with pytest.raises(ConditionTimeoutError) as exc_info:
            await wait_for_async_condition(evaluate, None, 20)

        assert exc_info.value.last_failure_reason == describe_failure(AssertionFailure(""))

    async def test_contract_error_is_not_retried(self) -> None:
        """許可されていない戻り値は再評価せずに ConditionContractError になること。"""
        calls = []

        async def evaluate():
            calls.append(1)
            return "done"

        with pytest.raises(ConditionContractError):
            await wait_for_async_condition(evaluate, None, 1000)

        assert len(calls) == 1

    async def test_default_timeout_from_config(self) -> None:
        set_config(DomCheckConfig(default_timeout_millis=10, poll_interval_millis=1))

        async def evaluate():
            return False

        with pytest.raises(ConditionTimeoutError) as exc_info:
            await wait_for_async_condition(evaluate)

        assert exc_info.value.timeout_millis == 10
