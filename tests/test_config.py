"""
設定読み込みのユニットテスト

テスト対象:
  - load_config_from_env: 環境変数からの読み込みと不正値の扱い
  - parse_viewport: ビューポート指定のパース
  - get_config / set_config: プロセス全体の設定
"""

from __future__ import annotations

import logging

import pytest

from domcheck.config import (
    DomCheckConfig,
    get_config,
    load_config_from_env,
    parse_viewport,
    set_config,
)


class TestLoadConfigFromEnv:
    """load_config_from_env のテスト。"""

    def test_defaults(self) -> None:
        """環境変数がなければデフォルト値になること。"""
        config = load_config_from_env()
        assert config == DomCheckConfig()
        assert config.default_timeout_millis == 2000
        assert config.poll_interval_millis == 20
        assert config.border_box_tolerance == 0.5
        assert config.headed is False
        assert (config.viewport_width, config.viewport_height) == (1280, 720)

    def test_reads_all_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """全ての環境変数が反映されること。"""
        monkeypatch.setenv("DOMCHECK_TIMEOUT_MS", "5000")
        monkeypatch.setenv("DOMCHECK_POLL_INTERVAL_MS", "50")
        monkeypatch.setenv("DOMCHECK_BORDER_BOX_TOLERANCE", "1.5")
        monkeypatch.setenv("DOMCHECK_HEADED", "yes")
        monkeypatch.setenv("DOMCHECK_VIEWPORT", "1920x1080")

        config = load_config_from_env()

        assert config.default_timeout_millis == 5000
        assert config.poll_interval_millis == 50
        assert config.border_box_tolerance == 1.5
        assert config.headed is True
        assert (config.viewport_width, config.viewport_height) == (1920, 1080)

    @pytest.mark.parametrize("raw", ["abc", "-1", "1.5"])
    def test_invalid_timeout_is_ignored(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture, raw: str,
    ) -> None:
        """不正なタイムアウトは警告してデフォルト値を使うこと。"""
        monkeypatch.setenv("DOMCHECK_TIMEOUT_MS", raw)

        with caplog.at_level(logging.WARNING, logger="domcheck.config"):
            config = load_config_from_env()

        assert config.default_timeout_millis == 2000
        assert "DOMCHECK_TIMEOUT_MS" in caplog.text

    def test_invalid_viewport_is_ignored(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """不正なビューポートは警告してデフォルト値を使うこと。"""
        monkeypatch.setenv("DOMCHECK_VIEWPORT", "wide")

        with caplog.at_level(logging.WARNING, logger="domcheck.config"):
            config = load_config_from_env()

        assert config.viewport_width == 1280
        assert "DOMCHECK_VIEWPORT" in caplog.text

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("no", False)])
    def test_headed_flag(self, monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
        """DOMCHECK_HEADED の真偽値が解釈されること。"""
        monkeypatch.setenv("DOMCHECK_HEADED", raw)
        assert load_config_from_env().headed is expected


class TestParseViewport:
    """parse_viewport のテスト。"""

    def test_valid(self) -> None:
        assert parse_viewport("800x600") == (800, 600)
        assert parse_viewport("800X600") == (800, 600)

    @pytest.mark.parametrize("raw", ["800", "800x", "axb", "1x2x3"])
    def test_invalid(self, raw: str) -> None:
        with pytest.raises(ValueError, match="WIDTHxHEIGHT"):
            parse_viewport(raw)


class TestGlobalConfig:
    """get_config / set_config のテスト。"""

    def test_get_config_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """初回読み込み後は環境変数を変更しても同じ設定が返ること。"""
        first = get_config()
        monkeypatch.setenv("DOMCHECK_TIMEOUT_MS", "9999")
        assert get_config() is first

    def test_set_config_and_reload(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """set_config で差し替え、None で再読み込みされること。"""
        custom = DomCheckConfig(default_timeout_millis=10)
        set_config(custom)
        assert get_config() is custom

        monkeypatch.setenv("DOMCHECK_TIMEOUT_MS", "777")
        set_config(None)
        assert get_config().default_timeout_millis == 777
