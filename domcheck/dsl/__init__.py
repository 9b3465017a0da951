# 期待値ファイル（YAML）
# スキーマ定義、パーサー、取得したノードからの期待値生成を提供

from .parser import DslValidationError, ExpectationParser
from .recorder import expectation_from_node
from .schema import (
    CustomExpectation,
    ElementExpectation,
    ElementFields,
    ExpectationDocument,
    FilteredNodesModel,
    NodeExpectation,
    TextNodeExpectation,
)

__all__ = [
    "CustomExpectation",
    "DslValidationError",
    "ElementExpectation",
    "ElementFields",
    "ExpectationDocument",
    "ExpectationParser",
    "FilteredNodesModel",
    "NodeExpectation",
    "TextNodeExpectation",
    "expectation_from_node",
]
