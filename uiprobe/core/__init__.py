# コアモジュール
# プローブエンジン、ドライバー、ポーリング、セッション実行、レポート生成、成果物管理を提供

from .artifacts import ArtifactsManager
from .driver import (
    BrowserDriver,
    BrowserLaunchError,
    DriverElement,
    DriverError,
    NavigationError,
    PlaywrightDriver,
    PlaywrightElement,
)
from .locators import build_playwright_locator, describe_locator
from .probe import ProbeEngine
from .reporting import Reporter
from .results import ProbeOutcome, ProbePhase, ProbeRun, ProbeVerdict, ResolvedElement
from .session import SessionRunner, check_connection, page_url
from .waits import PollResult, poll_until

__all__ = [
    "ArtifactsManager",
    "BrowserDriver",
    "BrowserLaunchError",
    "DriverElement",
    "DriverError",
    "NavigationError",
    "PlaywrightDriver",
    "PlaywrightElement",
    "PollResult",
    "ProbeEngine",
    "ProbeOutcome",
    "ProbePhase",
    "ProbeRun",
    "ProbeVerdict",
    "Reporter",
    "ResolvedElement",
    "SessionRunner",
    "build_playwright_locator",
    "check_connection",
    "describe_locator",
    "page_url",
    "poll_until",
]
