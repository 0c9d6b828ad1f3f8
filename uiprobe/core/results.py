"""
プローブ結果 — ProbeVerdict / ProbeRun データクラス

主な構成:
  - ProbeOutcome: passed / failed / skipped
  - ProbePhase: verdict を確定させたフェーズ（構成・前提条件・解決・アクション・事後条件・実行全体）
  - ResolvedElement: 解決済み要素（一致した候補ロケーターと要素参照）
  - ProbeVerdict: 1 プローブの結果（記録後は変更しない）
  - ProbeRun: 実行順に verdict を蓄積する値オブジェクト
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from ..dsl.schema import Locator
    from .driver import DriverElement


class ProbeOutcome(str, Enum):
    """プローブの結果種別。"""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class ProbePhase(str, Enum):
    """verdict を確定させたフェーズ。"""

    CONFIGURATION = "configuration"
    SETUP = "setup"
    RESOLUTION = "resolution"
    ACTION = "action"
    POSTCONDITION = "postcondition"
    RUN = "run"


@dataclass(frozen=True)
class ResolvedElement:
    """候補ロケーターの解決結果。

    Attributes:
        locator: 一致した候補ロケーター
        index: 候補リスト内のインデックス（0始まり）
        description: ロケーターの説明文字列
        element: ドライバーが所有する要素参照（プローブ中のみ借用）
    """

    locator: Locator
    index: int
    description: str
    element: DriverElement


@dataclass(frozen=True)
class ProbeVerdict:
    """1 プローブの結果レコード。

    Attributes:
        capability: ケイパビリティ名
        outcome: 結果種別
        detail: 人間可読な説明（失敗時はフェーズと理由を必ず含む）
        timestamp: 確定日時
        page: 対象ページ（パスまたは URL）
        matched_locator: 解決時に一致したロケーターの説明
        phase: verdict を確定させたフェーズ
        duration_ms: 所要時間（ミリ秒）
        screenshot_path: 失敗時スクリーンショットのパス
    """

    capability: str
    outcome: ProbeOutcome
    detail: str
    timestamp: datetime = field(default_factory=datetime.now)
    page: Optional[str] = None
    matched_locator: Optional[str] = None
    phase: Optional[ProbePhase] = None
    duration_ms: float = 0.0
    screenshot_path: Optional[Path] = None

    @property
    def passed(self) -> bool:
        return self.outcome is ProbeOutcome.PASSED

    def with_screenshot(self, path: Path) -> ProbeVerdict:
        """スクリーンショットパスを付与した新しい verdict を返す。"""
        return dataclasses.replace(self, screenshot_path=path)

    def to_dict(self) -> dict[str, Any]:
        return {
            "capability": self.capability,
            "outcome": self.outcome.value,
            "detail": self.detail,
            "timestamp": self.timestamp.isoformat(),
            "page": self.page,
            "matched_locator": self.matched_locator,
            "phase": self.phase.value if self.phase else None,
            "duration_ms": self.duration_ms,
            "screenshot_path": (
                self.screenshot_path.as_posix() if self.screenshot_path else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProbeVerdict:
        timestamp = data.get("timestamp")
        phase = data.get("phase")
        screenshot = data.get("screenshot_path")
        return cls(
            capability=data.get("capability", ""),
            outcome=ProbeOutcome(data.get("outcome", "failed")),
            detail=data.get("detail", ""),
            timestamp=datetime.fromisoformat(timestamp) if timestamp else datetime.now(),
            page=data.get("page"),
            matched_locator=data.get("matched_locator"),
            phase=ProbePhase(phase) if phase else None,
            duration_ms=data.get("duration_ms", 0.0),
            screenshot_path=Path(screenshot) if screenshot else None,
        )


@dataclass
class ProbeRun:
    """1 回の実行で得られた verdict の列。

    プロセス全体で共有する状態は持たず、エンジンとレポートの間で明示的に受け渡す。
    verdict は record() で追加するのみで、追加順が実行順となる。

    Attributes:
        base_url: 対象アプリケーションのベース URL
        verdicts: verdict のリスト（実行順）
        started_at: 実行開始日時
        finished_at: 実行終了日時
        aborted: 実行全体が中断された場合の理由
    """

    base_url: str = ""
    verdicts: list[ProbeVerdict] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    aborted: Optional[str] = None

    def record(self, verdict: ProbeVerdict) -> None:
        self.verdicts.append(verdict)

    def merge(self, other: ProbeRun) -> None:
        """別セッションの verdict を末尾に追加する。"""
        self.verdicts.extend(other.verdicts)

    def abort(self, message: str) -> None:
        """実行全体の失敗を記録する。

        中断理由を保持し、capability="run" の failed verdict を最後に追加する。
        """
        self.aborted = message
        self.record(ProbeVerdict(
            capability="run",
            outcome=ProbeOutcome.FAILED,
            detail=message,
            phase=ProbePhase.RUN,
        ))

    def finish(self) -> None:
        if self.finished_at is None:
            self.finished_at = datetime.now()

    def summary(self) -> dict[str, int]:
        """passed / failed / skipped の件数を返す。"""
        return {
            "passed": sum(1 for v in self.verdicts if v.outcome is ProbeOutcome.PASSED),
            "failed": sum(1 for v in self.verdicts if v.outcome is ProbeOutcome.FAILED),
            "skipped": sum(1 for v in self.verdicts if v.outcome is ProbeOutcome.SKIPPED),
        }

    @property
    def all_passed(self) -> bool:
        """全 verdict が passed であり、中断されていないか。"""
        return self.aborted is None and all(v.passed for v in self.verdicts)
