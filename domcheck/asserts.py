"""
アサーションプリミティブ

ノード検証・条件待機が利用する最小限のアサーション関数群。
不一致時は AssertionFailure（AssertionError のサブクラス）を送出し、
一致時は何も返さない。pytest からは通常の assert 失敗と同様に報告される。
"""

from __future__ import annotations

from typing import Any, Optional

_MISSING = object()


class AssertionFailure(AssertionError):
    """アサーション不一致を表す例外。

    Attributes:
        actual: 実際の値
        expected: 期待値
        message: 検証内容を説明するメッセージ（文脈プレフィックスを含む）
    """

    def __init__(self, message: str, actual: Any = _MISSING, expected: Any = _MISSING) -> None:
        self.message = message
        self.actual = None if actual is _MISSING else actual
        self.expected = None if expected is _MISSING else expected
        self._has_values = actual is not _MISSING or expected is not _MISSING
        super().__init__(self._format())

    def _format(self) -> str:
        if not self._has_values:
            return self.message
        details = f"期待値 {self.expected!r}, 実際の値 {self.actual!r}"
        return f"{self.message}: {details}" if self.message else details


def _msg(message: Optional[str]) -> str:
    return message or ""


def equal(actual: Any, expected: Any, message: Optional[str] = None) -> None:
    """actual == expected を検証する。"""
    if actual != expected:
        raise AssertionFailure(_msg(message), actual, expected)


def is_true(value: Any, message: Optional[str] = None) -> None:
    """value が True そのものであることを検証する。"""
    if value is not True:
        raise AssertionFailure(_msg(message), value, True)


def is_ok(value: Any, message: Optional[str] = None) -> None:
    """value が真値であることを検証する。"""
    if not value:
        raise AssertionFailure(_msg(message), value, "truthy value")


def is_none(value: Any, message: Optional[str] = None) -> None:
    """value が None であることを検証する。"""
    if value is not None:
        raise AssertionFailure(_msg(message), value, None)


def approximately(
    actual: float, expected: float, delta: float, message: Optional[str] = None,
) -> None:
    """|actual - expected| <= delta を検証する。

    Args:
        actual: 実際の値
        expected: 期待値
        delta: 許容誤差
        message: 検証内容を説明するメッセージ
    """
    if actual is None or abs(actual - expected) > delta:
        raise AssertionFailure(
            f"{_msg(message)} (許容誤差 ±{delta})", actual, expected,
        )


def fail(actual: Any = _MISSING, expected: Any = _MISSING, message: Optional[str] = None) -> None:
    """無条件に失敗させる。"""
    raise AssertionFailure(_msg(message), actual, expected)
