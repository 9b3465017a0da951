"""
domcheck 設定：環境変数からの設定読み込み

ポーリング待機・ノード検証・ブラウザ起動の既定値を環境変数で上書きできる。
関数引数 > 環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  DOMCHECK_TIMEOUT_MS            : 条件待機のデフォルトタイムアウト（デフォルト: 2000）
  DOMCHECK_POLL_INTERVAL_MS      : 条件の再評価間隔（デフォルト: 20）
  DOMCHECK_BORDER_BOX_TOLERANCE  : borderBox 比較の許容誤差（デフォルト: 0.5）
  DOMCHECK_HEADED                : CLI でブラウザを表示するか（true/false, デフォルト: false）
  DOMCHECK_VIEWPORT              : CLI のビューポートサイズ（WIDTHxHEIGHT, デフォルト: 1280x720）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_TIMEOUT = "DOMCHECK_TIMEOUT_MS"
_ENV_POLL_INTERVAL = "DOMCHECK_POLL_INTERVAL_MS"
_ENV_BORDER_BOX_TOLERANCE = "DOMCHECK_BORDER_BOX_TOLERANCE"
_ENV_HEADED = "DOMCHECK_HEADED"
_ENV_VIEWPORT = "DOMCHECK_VIEWPORT"


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class DomCheckConfig:
    """domcheck の実行時設定。

    Attributes:
        default_timeout_millis: wait_for_condition のデフォルトタイムアウト（ミリ秒）
        poll_interval_millis: 条件の再評価間隔（ミリ秒）
        border_box_tolerance: borderBox 比較で等しいとみなす誤差
        headed: CLI 実行時にブラウザを表示するか
        viewport_width: CLI 実行時のビューポート幅
        viewport_height: CLI 実行時のビューポート高さ
    """

    default_timeout_millis: int = 2000
    poll_interval_millis: int = 20
    border_box_tolerance: float = 0.5
    headed: bool = False
    viewport_width: int = 1280
    viewport_height: int = 720


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.lower() in ("true", "1", "yes")


def _parse_non_negative_int(key: str) -> Optional[int]:
    """環境変数を 0 以上の整数として読み込む。不正値は警告して無視する。"""
    raw = os.environ[key]
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, raw)
        return None
    if value < 0:
        logger.warning("%s に負の値は指定できません: %s", key, raw)
        return None
    return value


def parse_viewport(value: str) -> tuple[int, int]:
    """"WIDTHxHEIGHT" 形式の文字列をパースする。

    Args:
        value: ビューポート指定（例: "1920x1080"）

    Returns:
        (幅, 高さ) のタプル

    Raises:
        ValueError: 形式が不正な場合
    """
    try:
        w, h = value.lower().split("x")
        return int(w), int(h)
    except (ValueError, AttributeError) as exc:
        raise ValueError(
            f"ビューポートの形式が不正です: {value} (WIDTHxHEIGHT)"
        ) from exc


def load_config_from_env() -> DomCheckConfig:
    """環境変数から DomCheckConfig を生成する。

    設定されていない環境変数はデフォルト値を使用する。

    Returns:
        環境変数から読み込んだ設定
    """
    config = DomCheckConfig()

    if _ENV_TIMEOUT in os.environ:
        value = _parse_non_negative_int(_ENV_TIMEOUT)
        if value is not None:
            config.default_timeout_millis = value

    if _ENV_POLL_INTERVAL in os.environ:
        value = _parse_non_negative_int(_ENV_POLL_INTERVAL)
        if value is not None:
            config.poll_interval_millis = value

    if _ENV_BORDER_BOX_TOLERANCE in os.environ:
        raw = os.environ[_ENV_BORDER_BOX_TOLERANCE]
        try:
            config.border_box_tolerance = float(raw)
        except ValueError:
            logger.warning("%s の値が不正です: %s", _ENV_BORDER_BOX_TOLERANCE, raw)

    if _ENV_HEADED in os.environ:
        config.headed = _parse_bool(os.environ[_ENV_HEADED])

    if _ENV_VIEWPORT in os.environ:
        try:
            config.viewport_width, config.viewport_height = parse_viewport(
                os.environ[_ENV_VIEWPORT]
            )
        except ValueError:
            logger.warning("%s の値が不正です: %s", _ENV_VIEWPORT, os.environ[_ENV_VIEWPORT])

    logger.debug("設定を読み込みました: %s", config)
    return config


# ---------------------------------------------------------------------------
# プロセス全体の設定
# ---------------------------------------------------------------------------

_config: Optional[DomCheckConfig] = None


def get_config() -> DomCheckConfig:
    """現在の設定を返す。初回呼び出し時に環境変数から読み込む。"""
    global _config
    if _config is None:
        _config = load_config_from_env()
    return _config


def set_config(config: Optional[DomCheckConfig]) -> None:
    """設定を差し替える。None を渡すと次回 get_config() で再読み込みする。"""
    global _config
    _config = config
