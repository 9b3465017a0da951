# ノード構造検証
# check_nodes、チェッカーファクトリ、チェッカーレジストリ、ブラウザ上の検証待機を提供

from .checkers import (
    CheckerContractError,
    Checkers,
    ElementChecker,
    ElementSpec,
    FilteredNodes,
    TextNodeChecker,
)
from .expect import expect_nodes
from .nodes import Checker, check_nodes
from .registry import CheckerInfo, CheckerRegistry, default_registry

__all__ = [
    "Checker",
    "CheckerContractError",
    "CheckerInfo",
    "CheckerRegistry",
    "Checkers",
    "ElementChecker",
    "ElementSpec",
    "FilteredNodes",
    "TextNodeChecker",
    "check_nodes",
    "default_registry",
    "expect_nodes",
]
