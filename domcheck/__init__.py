# domcheck：DOM ノード構造の検証ライブラリ
# 条件待機・チェーン実行、ノード構造の検証、期待値ファイル、CLI を提供

from .asserts import AssertionFailure
from .config import DomCheckConfig, get_config, set_config
from .core import (
    ChainConfig,
    ConditionContractError,
    ConditionTimeoutError,
    Outcome,
    async_chain,
    async_condition,
    run_async_chain,
    wait_for_condition,
)
from .dom import NodePredicates, capture_snapshot, parse_fragment
from .matching import CheckerContractError, Checkers, ElementSpec, FilteredNodes, check_nodes, expect_nodes

__version__ = "0.1.0"

__all__ = [
    "AssertionFailure",
    "ChainConfig",
    "CheckerContractError",
    "Checkers",
    "ConditionContractError",
    "ConditionTimeoutError",
    "DomCheckConfig",
    "ElementSpec",
    "FilteredNodes",
    "NodePredicates",
    "Outcome",
    "async_chain",
    "async_condition",
    "capture_snapshot",
    "check_nodes",
    "expect_nodes",
    "get_config",
    "parse_fragment",
    "run_async_chain",
    "set_config",
    "wait_for_condition",
]
