"""
ArtifactsManager — 実行成果物の管理

実行ディレクトリ（artifacts/run-YYYYMMDD-HHMMSS/）の作成と、
失敗したプローブのスクリーンショット保存を担当する。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\-]")
"""ファイル名に使用できない文字を検出する正規表現。"""


@dataclass
class ArtifactsManager:
    """実行成果物の管理クラス。

    Attributes:
        base_dir: 成果物ベースディレクトリ（デフォルト: artifacts/）
        run_dir: 実行ディレクトリ（create_run_dir() で設定される）
    """

    base_dir: Path = field(default_factory=lambda: Path("artifacts"))
    run_dir: Optional[Path] = field(default=None, init=False)
    _screenshot_seq: int = field(default=0, init=False, repr=False)

    def create_run_dir(self, timestamp: Optional[datetime] = None) -> Path:
        """実行ディレクトリを作成して返す。

        同一秒に複数回実行された場合は連番サフィックスを付与する。
        """
        ts = timestamp or datetime.now()
        name = f"run-{ts.strftime('%Y%m%d-%H%M%S')}"
        candidate = self.base_dir / name
        suffix = 1
        while candidate.exists():
            candidate = self.base_dir / f"{name}-{suffix}"
            suffix += 1

        candidate.mkdir(parents=True, exist_ok=False)
        self.run_dir = candidate
        logger.info("実行ディレクトリを作成しました: %s", candidate)
        return candidate

    def save_screenshot(self, data: bytes, page: Optional[str], capability: str) -> Path:
        """スクリーンショット（PNG バイト列）を screenshots/ 配下に保存する。

        ファイル名: {連番4桁}_{ページ}_{ケイパビリティ}.png
        """
        if self.run_dir is None:
            self.create_run_dir()
        assert self.run_dir is not None

        ss_dir = self.run_dir / "screenshots"
        ss_dir.mkdir(parents=True, exist_ok=True)

        self._screenshot_seq += 1
        filename = (
            f"{self._screenshot_seq:04d}_{sanitize_name(page or 'page')}"
            f"_{sanitize_name(capability)}.png"
        )
        path = ss_dir / filename
        path.write_bytes(data)
        logger.info("スクリーンショット保存: %s", path)
        return path


def sanitize_name(name: str) -> str:
    """ファイルシステム安全な文字列に変換する（最大 60 文字）。"""
    sanitized = _UNSAFE_CHARS.sub("_", name).strip("_")
    return sanitized[:60] or "root"
