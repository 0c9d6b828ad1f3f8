"""
uiprobe — UI ケイパビリティプローブ

データテーブルの列管理ドロップダウンなどの UI ケイパビリティを、
候補ロケーターの先頭一致解決・アクション・事後条件検証の 3 フェーズで検証する。
"""

from .battery import default_battery
from .core.probe import ProbeEngine
from .core.results import ProbeOutcome, ProbeRun, ProbeVerdict
from .dsl.schema import Battery, CapabilityDescriptor

__version__ = "0.1.0"

__all__ = [
    "Battery",
    "CapabilityDescriptor",
    "ProbeEngine",
    "ProbeOutcome",
    "ProbeRun",
    "ProbeVerdict",
    "default_battery",
]
