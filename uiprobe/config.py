"""
実行設定 — 環境変数・CLI 引数からの設定読み込み

CLI 引数 > 環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  UIPROBE_HEADED           : ブラウザ表示モード（true/false, デフォルト: false）
  UIPROBE_WORKERS          : 並列セッション数（デフォルト: 1）
  UIPROBE_TIMEOUT_MS       : 全プローブのタイムアウト上書き（ミリ秒, デフォルト: 記述子の値）
  UIPROBE_POLL_INTERVAL_MS : ポーリング間隔（ミリ秒, デフォルト: 100）
  UIPROBE_NAV_TIMEOUT_MS   : ページ遷移タイムアウト（ミリ秒, デフォルト: 15000）
  UIPROBE_SETTLE_MS        : 遷移後の追加待機（ミリ秒, デフォルト: 0）
  UIPROBE_ARTIFACTS_DIR    : 成果物ディレクトリ（デフォルト: artifacts）
  UIPROBE_SCREENSHOT_MODE  : スクリーンショットモード（on_failure/none, デフォルト: on_failure）
  UIPROBE_VIEWPORT         : ビューポートサイズ WIDTHxHEIGHT（デフォルト: 1920x1080）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Literal, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_HEADED = "UIPROBE_HEADED"
_ENV_WORKERS = "UIPROBE_WORKERS"
_ENV_TIMEOUT_MS = "UIPROBE_TIMEOUT_MS"
_ENV_POLL_INTERVAL_MS = "UIPROBE_POLL_INTERVAL_MS"
_ENV_NAV_TIMEOUT_MS = "UIPROBE_NAV_TIMEOUT_MS"
_ENV_SETTLE_MS = "UIPROBE_SETTLE_MS"
_ENV_ARTIFACTS_DIR = "UIPROBE_ARTIFACTS_DIR"
_ENV_SCREENSHOT_MODE = "UIPROBE_SCREENSHOT_MODE"
_ENV_VIEWPORT = "UIPROBE_VIEWPORT"

_SCREENSHOT_MODES = ("on_failure", "none")


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class ProbeConfig:
    """プローブ実行の設定。

    Attributes:
        headed: ブラウザを表示するか（True: headed, False: headless）
        workers: 並列セッション数（1 = 単一コンテキストで逐次実行）
        timeout_ms: 全プローブのタイムアウト上書き（None で記述子の値を使用）
        poll_interval_ms: 解決・検証フェーズのポーリング間隔
        nav_timeout_ms: ページ遷移のタイムアウト
        settle_ms: 遷移後の追加待機
        action_timeout_ms: 要素操作（クリック等）のタイムアウト
        slow_mo: 各 Playwright 操作間の遅延（ミリ秒）
        artifacts_dir: 成果物ディレクトリ
        screenshot_mode: 失敗時スクリーンショットの保存モード
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
    """

    headed: bool = False
    workers: int = 1
    timeout_ms: Optional[int] = None
    poll_interval_ms: int = 100
    nav_timeout_ms: int = 15_000
    settle_ms: int = 0
    action_timeout_ms: int = 5000
    slow_mo: int = 0
    artifacts_dir: str = "artifacts"
    screenshot_mode: Literal["on_failure", "none"] = "on_failure"
    viewport_width: int = 1920
    viewport_height: int = 1080


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する（true / 1 / yes → True、それ以外 → False）。"""
    return value.lower() in ("true", "1", "yes")


def _parse_positive_int(key: str) -> Optional[int]:
    """環境変数を正の整数として読む。不正値は警告を出して None を返す。"""
    raw = os.environ[key]
    try:
        value = int(raw)
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, raw)
        return None
    if value <= 0:
        logger.warning("%s は正の値を指定してください: %s", key, raw)
        return None
    return value


def parse_viewport(value: str) -> tuple[int, int]:
    """WIDTHxHEIGHT 形式の文字列を (幅, 高さ) に変換する。

    Raises:
        ValueError: 形式が不正な場合
    """
    w, h = str(value).lower().split("x")
    width, height = int(w), int(h)
    if width <= 0 or height <= 0:
        raise ValueError(f"ビューポートサイズは正の値を指定してください: {value}")
    return width, height


def load_config_from_env() -> ProbeConfig:
    """環境変数から ProbeConfig を生成する。

    設定されていない・不正な環境変数はデフォルト値を使用する。
    """
    config = ProbeConfig()

    if _ENV_HEADED in os.environ:
        config.headed = _parse_bool(os.environ[_ENV_HEADED])

    for key, attr in (
        (_ENV_WORKERS, "workers"),
        (_ENV_TIMEOUT_MS, "timeout_ms"),
        (_ENV_POLL_INTERVAL_MS, "poll_interval_ms"),
        (_ENV_NAV_TIMEOUT_MS, "nav_timeout_ms"),
    ):
        if key in os.environ:
            value = _parse_positive_int(key)
            if value is not None:
                setattr(config, attr, value)

    if _ENV_SETTLE_MS in os.environ:
        raw = os.environ[_ENV_SETTLE_MS]
        try:
            config.settle_ms = max(0, int(raw))
        except ValueError:
            logger.warning("%s の値が不正です: %s", _ENV_SETTLE_MS, raw)

    if _ENV_ARTIFACTS_DIR in os.environ:
        config.artifacts_dir = os.environ[_ENV_ARTIFACTS_DIR]

    if _ENV_SCREENSHOT_MODE in os.environ:
        val = os.environ[_ENV_SCREENSHOT_MODE]
        if val in _SCREENSHOT_MODES:
            config.screenshot_mode = val  # type: ignore[assignment]
        else:
            logger.warning("%s の値が不正です: %s", _ENV_SCREENSHOT_MODE, val)

    if _ENV_VIEWPORT in os.environ:
        try:
            config.viewport_width, config.viewport_height = parse_viewport(
                os.environ[_ENV_VIEWPORT]
            )
        except ValueError:
            logger.warning(
                "%s の形式が不正です: %s (WIDTHxHEIGHT)",
                _ENV_VIEWPORT, os.environ[_ENV_VIEWPORT],
            )

    logger.debug("設定を読み込みました: %s", config)
    return config


def apply_overrides(config: ProbeConfig, **overrides: Any) -> ProbeConfig:
    """CLI 引数を ProbeConfig に適用する。

    値が None の引数は無視する（環境変数・デフォルト値を維持）。

    Raises:
        TypeError: ProbeConfig に存在しないキーが指定された場合
    """
    known = {f.name for f in fields(ProbeConfig)}
    for key, value in overrides.items():
        if key not in known:
            raise TypeError(f"未知の設定キーです: {key}")
        if value is not None:
            setattr(config, key, value)
    return config
