"""
共通テストフィクスチャ・Hypothesis ストラテジー定義

uiprobe のテスト全体で使用する以下を提供する:
  - プローブエンジン・インメモリページのフィクスチャ
  - バッテリー YAML のサンプル
  - ロケーター / 記述子を生成する Hypothesis ストラテジー
"""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import strategies as st

from fakes import ColumnMenuPage
from uiprobe.config import ProbeConfig
from uiprobe.core.probe import ProbeEngine
from uiprobe.dsl.schema import (
    AttributeLocator,
    CssLocator,
    RoleLocator,
    TextLocator,
)

# テストで使用する短いタイムアウト（ミリ秒）
FAST_TIMEOUT_MS = 300
FAST_INTERVAL_MS = 20


# ---------------------------------------------------------------------------
# 基本フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def engine() -> ProbeEngine:
    """短いポーリング間隔のプローブエンジン。"""
    return ProbeEngine(poll_interval_ms=FAST_INTERVAL_MS)


@pytest.fixture
def column_page() -> ColumnMenuPage:
    """正常に動作する列管理メニューを持つインメモリページ。"""
    return ColumnMenuPage()


@pytest.fixture
def fast_config(tmp_path: Path) -> ProbeConfig:
    """一時ディレクトリを成果物先とする設定。"""
    return ProbeConfig(
        poll_interval_ms=FAST_INTERVAL_MS,
        artifacts_dir=str(tmp_path / "artifacts"),
    )


@pytest.fixture
def tmp_artifacts(tmp_path: Path) -> Path:
    """テスト用の一時 artifacts ディレクトリ。"""
    artifacts_dir = tmp_path / "artifacts"
    artifacts_dir.mkdir()
    return artifacts_dir


@pytest.fixture
def sample_battery_yaml() -> str:
    """2 プローブからなるバッテリー YAML 文字列。"""
    return """\
title: sample
probes:
  - name: open-menu
    candidateLocators:
      - role: button
        name: Columns
      - css: button
        text: Columns
    action: click
    postCondition:
      kind: containerVisible
      locators:
        - role: menu
    timeoutMs: 1500
  - name: search-box
    candidateLocators:
      - attribute: placeholder
        value: Search
        match: contains
        tag: input
    action: typeText
    text: hello
"""


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

_identifier = st.from_regex(r"[a-z][a-z0-9\-]{0,15}", fullmatch=True)


def make_locator_strategy():
    """4 種別いずれかのロケーターを生成する Hypothesis ストラテジー。"""
    return st.one_of(
        st.builds(TextLocator, text=_identifier, exact=st.one_of(st.none(), st.booleans())),
        st.builds(
            AttributeLocator,
            attribute=st.sampled_from(["data-testid", "aria-label", "title"]),
            value=_identifier,
            match=st.sampled_from(["equals", "contains"]),
            tag=st.one_of(st.none(), st.sampled_from(["button", "div"])),
        ),
        st.builds(
            RoleLocator,
            role=st.sampled_from(["button", "menu", "checkbox", "listbox"]),
            name=st.one_of(st.none(), _identifier),
        ),
        st.builds(
            CssLocator,
            css=st.sampled_from(["body", ".grip", "[role=menu]", "button"]),
            text=st.one_of(st.none(), _identifier),
        ),
    )


def make_probe_name_strategy():
    """動詞-目的語形式のプローブ名を生成する Hypothesis ストラテジー。"""
    return st.from_regex(r"[a-z]+-[a-z]+(-[a-z]+)?", fullmatch=True)


@pytest.fixture
def locator_st():
    """ロケーターストラテジーをフィクスチャとして提供する。"""
    return make_locator_strategy()
