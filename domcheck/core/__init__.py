# コアモジュール
# 条件待機、チェーン実行、スケジューラを提供

from .chain import ChainConfig, async_chain, run_async_chain
from .scheduling import (
    AsyncioScheduler,
    Scheduler,
    ThreadingScheduler,
    VirtualScheduler,
    get_default_scheduler,
    set_default_scheduler,
)
from .waits import (
    ConditionContractError,
    ConditionPoll,
    ConditionTimeoutError,
    Outcome,
    async_condition,
    wait_for_async_condition,
    wait_for_condition,
)

__all__ = [
    "AsyncioScheduler",
    "ChainConfig",
    "ConditionContractError",
    "ConditionPoll",
    "ConditionTimeoutError",
    "Outcome",
    "Scheduler",
    "ThreadingScheduler",
    "VirtualScheduler",
    "async_chain",
    "async_condition",
    "get_default_scheduler",
    "run_async_chain",
    "set_default_scheduler",
    "wait_for_async_condition",
    "wait_for_condition",
]
